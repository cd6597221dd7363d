"""Prompt text sent to the generative models."""

from __future__ import annotations

from app.schemas import AdOptions

OPTIMIZE_PROMPT_INSTRUCTION = (
    "Rewrite the following user's prompt to be more descriptive and effective "
    "for a visual AI model. The new prompt should respect the user's original "
    "intent. Keep it concise and in the same language as the original. "
    "Directly output the optimized prompt without any preamble."
)

OPTIMIZE_VIDEO_PROMPT_INSTRUCTION = (
    "Rewrite the following user's prompt to be more descriptive and effective "
    "for a text-to-video AI model. Describe the subject, the motion and the "
    "camera movement. The new prompt should respect the user's original intent. "
    "Keep it concise and in the same language as the original. "
    "Directly output the optimized prompt without any preamble."
)

AD_BASE_PROMPT = (
    "Create a professional, photorealistic advertising image featuring the "
    "product from the first image."
)

AD_MODEL_PROMPT = (
    "The person from the second image should present the product naturally, "
    "keeping their face and appearance unchanged."
)

AD_OPTION_LABELS = {
    "industry": "Industry",
    "pose": "Pose",
    "ratio": "Aspect ratio",
    "background": "Background",
    "props": "Props",
    "lighting": "Lighting",
}


def build_ad_prompt(
    options: AdOptions,
    has_model: bool = False,
    custom_prompt: str | None = None,
) -> str:
    """Assemble the ad-composition prompt.

    Options left at "Auto" are omitted so the model picks them.
    """
    lines = [AD_BASE_PROMPT]
    if has_model:
        lines.append(AD_MODEL_PROMPT)

    for field, label in AD_OPTION_LABELS.items():
        value = getattr(options, field)
        if value and value != "Auto":
            lines.append(f"{label}: {value}.")

    lines.append("Keep the product's shape, colors, and branding exactly as shown.")

    if custom_prompt and custom_prompt.strip():
        lines.append(f"Additional instructions: {custom_prompt.strip()}")

    return "\n".join(lines)
