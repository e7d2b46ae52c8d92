"""Theme catalog and instruction builder.

A theme is a named set of six prompts plus an instruction template that
wraps each prompt into the text sent to the model.  This module is the
reference collaborator for :class:`~pictureme.core.batch.BatchOrchestrator`:
it validates the user's theme options, resolves the ordered prompt list, and
packages both into a :class:`BatchPlan`.

Theme-specific options
----------------------
- ``hairStyler`` — up to six selected styles (plus an optional custom style)
  and up to two hair colours.
- ``styleLookbook`` — one overall fashion style, or a custom one via
  ``"Other"``.
- ``headshots`` — expression and pose.
- ``eightiesMall`` — no options, but needs a batch-wide style generated
  once before any item runs (priming).
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from functools import partial

from pictureme.core.errors import ValidationError
from pictureme.core.models import BatchPlan, PromptSpec, ReferenceImage

logger = logging.getLogger(__name__)

MAX_HAIR_STYLES = 6
MAX_HAIR_COLORS = 2
OTHER_STYLE = "Other"

_LIKENESS = (
    "The highest priority is to maintain the exact facial features, likeness, "
    "and perceived gender of the person in the provided reference photo."
)
_KEEP_FACE = "Do not alter the person's core facial structure."


@dataclass(frozen=True)
class Theme:
    id: str
    name: str
    description: str
    prompts: tuple[PromptSpec, ...]
    album_title: str
    labelled: bool = True
    styles: tuple[str, ...] = ()
    priming_description: str | None = None


@dataclass
class ThemeOptions:
    """User choices that only affect instruction text."""

    headshot_expression: str = "Friendly Smile"
    headshot_pose: str = "Forward"
    lookbook_style: str = ""
    custom_lookbook_style: str = ""
    hair_styles: list[str] = field(default_factory=list)
    custom_hair_style: str = ""
    custom_hair_active: bool = False
    hair_colors: list[str] = field(default_factory=list)

    @property
    def final_lookbook_style(self) -> str:
        if self.lookbook_style == OTHER_STYLE:
            return self.custom_lookbook_style.strip()
        return self.lookbook_style


def _prompts(*pairs: tuple[str, str]) -> tuple[PromptSpec, ...]:
    return tuple(PromptSpec(id=i, base=b) for i, b in pairs)


THEMES: dict[str, Theme] = {
    theme.id: theme
    for theme in (
        Theme(
            id="decades",
            name="Time Traveler",
            description="See yourself through the decades.",
            album_title="Picture Me Through the Decades",
            prompts=_prompts(
                ("1950s", "A 1950s style portrait."),
                ("1960s", "A 1960s style portrait."),
                ("1970s", "A 1970s style portrait."),
                ("1980s", "An 1980s style portrait."),
                ("1990s", "A 1990s style portrait."),
                ("2000s", "A 2000s style portrait."),
            ),
        ),
        Theme(
            id="styleLookbook",
            name="Style Lookbook",
            description="Your personal fashion photoshoot.",
            album_title="Picture Me in my Style Lookbook",
            labelled=False,
            styles=(
                "Classic / Casual",
                "Streetwear",
                "Vintage",
                "Goth",
                "Preppy",
                "Minimalist",
                "Athleisure",
                "Old Money / Quiet Luxury",
                "Bohemian (Boho)",
                "Business Casual",
                "90s Grunge",
                "Cocktail / Formal",
            ),
            prompts=_prompts(
                ("Look 1", "a full-body shot, standing"),
                ("Look 2", "a half-body shot, smiling"),
                ("Look 3", "a candid walking shot"),
                ("Look 4", "a shot showing off outfit details"),
                ("Look 5", "a seated pose"),
                ("Look 6", "a close-up shot focusing on accessories"),
            ),
        ),
        Theme(
            id="eightiesMall",
            name="'80s Mall Shoot",
            description="Totally tubular 1980s portraits.",
            album_title="Picture Me at the '80s Mall",
            labelled=False,
            priming_description=(
                "A specific, creative, and detailed style for an 80s mall portrait "
                "studio photoshoot."
            ),
            prompts=_prompts(
                ("Smiling", "a friendly, smiling pose"),
                ("Thoughtful", "a thoughtful, looking away from the camera pose"),
                ("Fun", "a fun, laughing pose"),
                ("Serious", "a serious, dramatic pose"),
                ("Hand on Chin", "posing with their hand on their chin"),
                ("Over the Shoulder", "looking back over their shoulder"),
            ),
        ),
        Theme(
            id="figurines",
            name="Miniature Me",
            description="Your own collectible figurines.",
            album_title="My Miniature Me Collection",
            labelled=False,
            prompts=_prompts(
                (
                    "Bobblehead",
                    "A realistic bobblehead figure of the person with an oversized head, "
                    "displayed on a polished wooden desk next to a computer keyboard.",
                ),
                (
                    "Porcelain Figurine",
                    "A delicate souvenir porcelain figurine of the person, painted with "
                    "glossy colors, sitting on a lace doily on a vintage dresser.",
                ),
                (
                    "Retro Action Figure",
                    "A retro 1980s-style action figure of the person, complete with "
                    "articulated joints and slightly worn paint, posed in a dynamic stance "
                    "on a rocky diorama base.",
                ),
                (
                    "Vinyl Figure",
                    "A stylized collectible vinyl art toy of the person with minimalist "
                    "features, standing on a shelf filled with other similar toys.",
                ),
                (
                    "Plushy Figure",
                    "A soft, cute plushy figure of the person with detailed fabric texture "
                    "and stitching, sitting on a neatly made bed.",
                ),
                (
                    "Wooden Folk Art",
                    "A hand-carved wooden folk art figure of the person, painted with "
                    "rustic, charming details, standing on a simple wooden block on a "
                    "craft fair table.",
                ),
            ),
        ),
        Theme(
            id="hairStyler",
            name="Hair Styler",
            description="Try on new hairstyles and colors.",
            album_title="Picture Me with New Hairstyles",
            prompts=_prompts(
                ("Short", "a short hairstyle"),
                ("Medium", "a medium-length hairstyle"),
                ("Long", "a long hairstyle"),
                ("Straight", "straight hair"),
                ("Wavy", "wavy hair"),
                ("Curly", "curly hair"),
            ),
        ),
        Theme(
            id="impossibleSelfies",
            name="Impossible Pics",
            description="Photos that defy reality.",
            album_title="Picture Me in Impossible Selfies",
            prompts=_prompts(
                (
                    "With Lincoln",
                    "The person posing with Abraham Lincoln, who is also making a peace "
                    "sign and sticking his tongue out. Keep the original location.",
                ),
                (
                    "Alien & Bubbles",
                    "The person posing next to a realistic alien holding two bubble guns, "
                    "blowing thousands of bubbles. Keep the person's pose and the original "
                    "location.",
                ),
                ("Room of Puppies", "The person posing in a room filled with a hundred different puppies."),
                (
                    "Singing Puppets",
                    "The person posing in a room full of large, whimsical, brightly colored "
                    "felt puppets that are singing.",
                ),
                (
                    "Giant Chicken Tender",
                    "The person posing with their arm around a 4-foot-tall chicken tender. "
                    "Keep the person's facial expression exactly the same.",
                ),
                (
                    "Yeti Photobomb",
                    "Add a realistic yeti standing next to the person on the left side of "
                    "the photo, matching the lighting. Keep the person's pose and face "
                    "exactly the same.",
                ),
            ),
        ),
        Theme(
            id="headshots",
            name="Pro Headshots",
            description="Professional profile pictures.",
            album_title="Picture Me: Professional Headshots",
            labelled=False,
            prompts=_prompts(
                ("Business Suit", "wearing a dark business suit with a crisp white shirt"),
                ("Smart Casual", "wearing a smart-casual knit sweater over a collared shirt"),
                ("Creative Pro", "wearing a dark turtleneck"),
                ("Corporate Look", "wearing a light blue button-down shirt"),
                ("Bright & Modern", "wearing a colorful blazer"),
                ("Relaxed", "wearing a simple, high-quality t-shirt under a casual jacket"),
            ),
        ),
    )
}

DEFAULT_ALBUM_TITLE = "My PictureMe Album"


def get_theme(theme_id: str | None) -> Theme:
    """Look up a theme by id.

    Raises:
        ValidationError: No theme selected or unknown id.
    """
    if not theme_id:
        raise ValidationError("Please select a theme!")
    theme = THEMES.get(theme_id)
    if theme is None:
        raise ValidationError(f"Unknown theme: {theme_id}")
    return theme


def validate_options(theme_id: str | None, options: ThemeOptions) -> None:
    """Check that the theme-specific options are complete.

    Raises:
        ValidationError: With the message to show the user.
    """
    theme = get_theme(theme_id)

    if theme.id == "styleLookbook" and not options.final_lookbook_style:
        raise ValidationError("Please choose or enter a fashion style for your lookbook!")

    if theme.id == "hairStyler":
        custom = options.custom_hair_style.strip()
        if not options.hair_styles and (not options.custom_hair_active or not custom):
            raise ValidationError("Please select at least one hairstyle to generate!")
        if options.custom_hair_active and not custom:
            raise ValidationError("Please enter your custom hairstyle or deselect 'Other...'")
        total = len(options.hair_styles) + (1 if options.custom_hair_active else 0)
        if total > MAX_HAIR_STYLES:
            raise ValidationError(f"You can select a maximum of {MAX_HAIR_STYLES} styles.")
        if len(options.hair_colors) > MAX_HAIR_COLORS:
            raise ValidationError(f"You can choose at most {MAX_HAIR_COLORS} hair colors.")


def resolve_prompts(theme_id: str, options: ThemeOptions) -> tuple[PromptSpec, ...]:
    """Return the ordered prompts a batch for ``theme_id`` will generate.

    For ``hairStyler`` only the selected styles are kept (in catalog order),
    followed by the custom style when one is active.  A custom style whose
    text matches a selected style id is dropped, since item ids must be
    unique within a batch.
    """
    theme = get_theme(theme_id)
    if theme.id != "hairStyler":
        return theme.prompts

    selected = [p for p in theme.prompts if p.id in options.hair_styles]
    custom = options.custom_hair_style.strip()
    if options.custom_hair_active and custom:
        if any(p.id == custom for p in selected):
            logger.info(f"Custom hairstyle {custom!r} is already selected; skipping duplicate")
        else:
            selected.append(PromptSpec(id=custom, base=custom))
    return tuple(selected)


def _hair_instruction(prompt: PromptSpec, options: ThemeOptions) -> str:
    instruction = (
        f"{_LIKENESS} Keeping the original photo's composition, style the person's hair to "
        f"be a perfect example of {prompt.base}. If the person's hair already has this style, "
        f"enhance and perfect it. Do not alter the person's core facial structure, clothing, "
        f"or the background."
    )
    if prompt.id in ("Short", "Medium", "Long"):
        instruction += " Maintain the person's original hair texture (e.g., straight, wavy, curly)."

    colors = options.hair_colors
    if len(colors) == 1:
        instruction += f" The hair color should be {colors[0]}."
    elif len(colors) == 2:
        instruction += f" The hair should be a mix of two colors: {colors[0]} and {colors[1]}."
    return instruction


def build_instruction(
    theme_id: str, prompt: PromptSpec, options: ThemeOptions, album_style: str = ""
) -> str:
    """Build the model instruction for one prompt of ``theme_id``.

    Args:
        theme_id: Theme the prompt belongs to.
        prompt: The prompt being generated.
        options: Theme options chosen by the user.
        album_style: Batch-wide style from priming (``eightiesMall`` only).

    Returns:
        The instruction text sent alongside the reference photo.
    """
    if theme_id == "decades":
        return (
            "The highest priority is to maintain the exact facial features, likeness, "
            "perceived gender, framing, and composition of the person in the provided "
            "reference photo. Keeping the original photo's composition, change the person's "
            "hair, clothing, and accessories, as well as the photo's background, to match "
            f"the style of the {prompt.id}. {_KEEP_FACE}"
        )
    if theme_id == "impossibleSelfies":
        return (
            f"{_LIKENESS} Keeping the original photo's composition as much as possible, place "
            "the person into the following scene, changing their clothing, hair, and the "
            f"background to match: {prompt.base}. {_KEEP_FACE}"
        )
    if theme_id == "hairStyler":
        return _hair_instruction(prompt, options)
    if theme_id == "headshots":
        pose = (
            "facing forward towards the camera"
            if options.headshot_pose == "Forward"
            else "posed at a slight angle to the camera"
        )
        return (
            f"{_LIKENESS} Transform the image into a professional headshot. The person should "
            f'be {pose} with a "{options.headshot_expression}" expression. They should be '
            f"{prompt.base}. Please maintain the original hairstyle from the photo. The "
            "background should be a clean, neutral, out-of-focus studio background (like "
            f"light gray, beige, or white). {_KEEP_FACE} The final image should be a "
            "well-lit, high-quality professional portrait."
        )
    if theme_id == "eightiesMall":
        return (
            f"{_LIKENESS} Transform the image into a photo from a single 1980s mall "
            f'photoshoot. The overall style for the entire photoshoot is: "{album_style}". '
            f"For this specific photo, the person should be in {prompt.base}. The person's "
            "hair and clothing should be 80s style and be consistent across all photos in "
            "this set. The background and lighting must also match the overall style for "
            "every photo."
        )
    if theme_id == "styleLookbook":
        return (
            f"{_LIKENESS} Transform the image into a high-fashion lookbook photo. The overall "
            f'fashion style for the entire lookbook is "{options.final_lookbook_style}". For '
            "this specific photo, create a unique, stylish outfit that fits the overall style, "
            f"and place the person in {prompt.base} in a suitable, fashionable setting. The "
            "person's hair and makeup should also complement the style. Each photo in the "
            f"lookbook should feature a different outfit. {_KEEP_FACE}"
        )
    if theme_id == "figurines":
        return (
            "The highest priority is to maintain the exact facial features and likeness of "
            "the person in the provided reference photo. Transform the person into a "
            "miniature figurine based on the following description, placing it in a "
            f"realistic environment: {prompt.base}. The final image should look like a real "
            f"photograph of a physical object. {_KEEP_FACE}"
        )
    return f"Create an image based on the reference photo and this prompt: {prompt.base}"


def _instruction_for(theme_id: str, options: ThemeOptions, prompt: PromptSpec, album_style: str) -> str:
    return build_instruction(theme_id, prompt, options, album_style)


def build_plan(
    theme_id: str | None, reference: ReferenceImage | None, options: ThemeOptions | None = None
) -> BatchPlan:
    """Validate options and package a theme into a :class:`BatchPlan`.

    The options are copied into the plan, so later changes to the caller's
    selection do not affect regeneration of an existing batch.

    Raises:
        ValidationError: Missing reference, unknown theme, or incomplete options.
    """
    options = options or ThemeOptions()
    if reference is None or not reference.data:
        raise ValidationError("Please upload a photo to get started!")
    theme = get_theme(theme_id)
    validate_options(theme.id, options)

    snapshot = copy.deepcopy(options)
    prompts = resolve_prompts(theme.id, snapshot)
    logger.info(f"Built plan for theme {theme.id!r} with {len(prompts)} prompts")

    return BatchPlan(
        prompts=prompts,
        reference=reference,
        build_instruction=partial(_instruction_for, theme.id, snapshot),
        priming_description=theme.priming_description,
        theme_id=theme.id,
        album_title=theme.album_title,
        label_results=theme.labelled,
    )
