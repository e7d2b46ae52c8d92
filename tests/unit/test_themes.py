"""Tests for pictureme.core.themes — catalog, option validation, plans."""

from __future__ import annotations

import pytest

from pictureme.core.batch import BatchOrchestrator
from pictureme.core.errors import ValidationError
from pictureme.core.models import PromptSpec
from pictureme.core.themes import (
    THEMES,
    ThemeOptions,
    build_instruction,
    build_plan,
    get_theme,
    resolve_prompts,
    validate_options,
)

from tests.conftest import FakeGenerationClient


class TestCatalog:
    def test_every_theme_has_six_unique_prompts(self):
        for theme in THEMES.values():
            ids = [p.id for p in theme.prompts]
            assert len(ids) == 6, theme.id
            assert len(set(ids)) == 6, theme.id

    def test_only_eighties_mall_is_primed(self):
        primed = [t.id for t in THEMES.values() if t.priming_description]
        assert primed == ["eightiesMall"]

    def test_get_theme(self):
        assert get_theme("decades").name == "Time Traveler"

    @pytest.mark.parametrize("theme_id, message", [(None, "select a theme"), ("", "select a theme"), ("nope", "Unknown theme")])
    def test_get_theme_rejects(self, theme_id, message):
        with pytest.raises(ValidationError, match=message):
            get_theme(theme_id)


class TestValidateOptions:
    def test_lookbook_requires_style(self):
        with pytest.raises(ValidationError, match="fashion style"):
            validate_options("styleLookbook", ThemeOptions())

    def test_lookbook_other_requires_custom_text(self):
        with pytest.raises(ValidationError):
            validate_options("styleLookbook", ThemeOptions(lookbook_style="Other", custom_lookbook_style="  "))

    def test_lookbook_other_with_custom_text(self):
        options = ThemeOptions(lookbook_style="Other", custom_lookbook_style=" Cyberpunk ")
        validate_options("styleLookbook", options)
        assert options.final_lookbook_style == "Cyberpunk"

    def test_hair_requires_a_style(self):
        with pytest.raises(ValidationError, match="at least one hairstyle"):
            validate_options("hairStyler", ThemeOptions())

    def test_hair_custom_only_is_enough(self):
        validate_options("hairStyler", ThemeOptions(custom_hair_active=True, custom_hair_style="Mohawk"))

    def test_hair_active_custom_must_be_filled(self):
        with pytest.raises(ValidationError, match="custom hairstyle"):
            validate_options(
                "hairStyler", ThemeOptions(hair_styles=["Short"], custom_hair_active=True)
            )

    def test_hair_style_limit(self):
        options = ThemeOptions(
            hair_styles=["Short", "Medium", "Long", "Straight", "Wavy", "Curly"],
            custom_hair_active=True,
            custom_hair_style="Mohawk",
        )
        with pytest.raises(ValidationError, match="maximum of 6"):
            validate_options("hairStyler", options)

    def test_hair_color_limit(self):
        options = ThemeOptions(hair_styles=["Short"], hair_colors=["red", "blue", "green"])
        with pytest.raises(ValidationError, match="at most 2"):
            validate_options("hairStyler", options)

    def test_other_themes_ignore_options(self):
        validate_options("decades", ThemeOptions())


class TestResolvePrompts:
    def test_fixed_themes_use_catalog(self):
        assert resolve_prompts("decades", ThemeOptions()) == THEMES["decades"].prompts

    def test_hair_keeps_catalog_order_then_custom(self):
        options = ThemeOptions(
            hair_styles=["Curly", "Short"], custom_hair_active=True, custom_hair_style=" Mohawk "
        )
        prompts = resolve_prompts("hairStyler", options)
        assert [p.id for p in prompts] == ["Short", "Curly", "Mohawk"]
        assert prompts[-1] == PromptSpec(id="Mohawk", base="Mohawk")


class TestBuildInstruction:
    def test_decades_uses_prompt_id(self):
        text = build_instruction("decades", PromptSpec("1970s", "A 1970s style portrait."), ThemeOptions())
        assert "match the style of the 1970s." in text

    def test_hair_length_keeps_texture(self):
        short = build_instruction("hairStyler", PromptSpec("Short", "a short hairstyle"), ThemeOptions())
        wavy = build_instruction("hairStyler", PromptSpec("Wavy", "wavy hair"), ThemeOptions())
        assert "original hair texture" in short
        assert "original hair texture" not in wavy

    def test_hair_colors(self):
        prompt = PromptSpec("Wavy", "wavy hair")
        one = build_instruction("hairStyler", prompt, ThemeOptions(hair_colors=["copper"]))
        two = build_instruction("hairStyler", prompt, ThemeOptions(hair_colors=["copper", "teal"]))
        assert one.endswith("The hair color should be copper.")
        assert two.endswith("mix of two colors: copper and teal.")

    def test_headshot_pose_and_expression(self):
        prompt = PromptSpec("Relaxed", "wearing a t-shirt")
        forward = build_instruction("headshots", prompt, ThemeOptions())
        angled = build_instruction(
            "headshots", prompt, ThemeOptions(headshot_pose="Angle", headshot_expression="Serious")
        )
        assert "facing forward towards the camera" in forward
        assert '"Friendly Smile" expression' in forward
        assert "slight angle" in angled
        assert '"Serious" expression' in angled

    def test_eighties_mall_embeds_album_style(self):
        text = build_instruction(
            "eightiesMall", PromptSpec("Fun", "a fun, laughing pose"), ThemeOptions(), "laser backdrop"
        )
        assert 'entire photoshoot is: "laser backdrop"' in text

    def test_lookbook_embeds_style(self):
        text = build_instruction(
            "styleLookbook", PromptSpec("Look 1", "a seated pose"), ThemeOptions(lookbook_style="Goth")
        )
        assert 'lookbook is "Goth"' in text

    def test_unknown_theme_falls_back(self):
        text = build_instruction("custom", PromptSpec("x", "a cat"), ThemeOptions())
        assert text == "Create an image based on the reference photo and this prompt: a cat"


class TestBuildPlan:
    def test_requires_reference(self):
        with pytest.raises(ValidationError, match="upload a photo"):
            build_plan("decades", None)

    def test_plan_carries_theme_metadata(self, reference_image):
        plan = build_plan("eightiesMall", reference_image)
        assert plan.theme_id == "eightiesMall"
        assert plan.album_title == "Picture Me at the '80s Mall"
        assert plan.label_results is False
        assert plan.priming_description

    def test_options_are_snapshotted(self, reference_image):
        options = ThemeOptions(lookbook_style="Goth")
        plan = build_plan("styleLookbook", reference_image, options)

        options.lookbook_style = "Preppy"

        text = plan.build_instruction(plan.prompts[0], "")
        assert '"Goth"' in text

    @pytest.mark.asyncio
    async def test_primed_theme_runs_end_to_end(self, reference_image):
        client = FakeGenerationClient(style="teal blinds and smoke")
        plan = build_plan("eightiesMall", reference_image)

        batch = await BatchOrchestrator(client).generate(plan)

        assert client.text_calls == [plan.priming_description]
        assert len(client.payloads) == 6
        assert all('"teal blinds and smoke"' in p.instruction for p in client.payloads)
        assert batch.progress == 1.0


class TestCustomHairstyleDuplicates:
    def test_custom_matching_selected_id_is_dropped(self):
        options = ThemeOptions(hair_styles=["Short"], custom_hair_active=True, custom_hair_style="Short")
        assert [p.id for p in resolve_prompts("hairStyler", options)] == ["Short"]

    @pytest.mark.asyncio
    async def test_plan_with_duplicate_custom_starts(self, reference_image):
        options = ThemeOptions(
            hair_styles=["Short", "Wavy"], custom_hair_active=True, custom_hair_style=" Wavy "
        )
        plan = build_plan("hairStyler", reference_image, options)

        batch = await BatchOrchestrator(FakeGenerationClient()).start(plan)

        assert [item.id for item in batch.items] == ["Short", "Wavy"]
