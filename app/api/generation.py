"""Paid generation endpoints - image edit, ad composition, prompt optimization.

Endpoints:
    POST /api/generate              - Edit/combine images (1 credit)
    POST /api/generate-ad           - Compose an ad image (2 credits)
    POST /api/optimize-prompt       - Rewrite an image prompt (0.1 credit)
    POST /api/optimize-video-prompt - Rewrite a video prompt (0.1 credit)

Request bodies are validated before anything is charged. Once charged,
any failure of the upstream call refunds the charge before the error
is returned.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_user
from app.errors import ValidationError
from app.ledger.credits import CREDIT_COSTS
from app.ledger.operations import execute_paid_operation
from app.schemas import (
    GenerateAdRequest,
    GenerateImageRequest,
    ImageResponse,
    OptimizedPromptResponse,
    PromptRequest,
)
from app.services.genai import GenerationService, get_generation_service
from app.users.repository import UserRecord

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generation"])


@router.post("/generate", response_model=ImageResponse)
async def generate_image(
    request: GenerateImageRequest,
    user: UserRecord = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
) -> ImageResponse:
    """Edit or combine the uploaded images following the prompt."""
    prompt = (request.prompt or "").strip()
    if not request.images or not prompt:
        raise ValidationError("At least one image and a prompt are required.")

    result = await execute_paid_operation(
        user.id,
        CREDIT_COSTS["image_edit"],
        lambda: service.edit_image(request.images, prompt),
        operation="image_edit",
    )
    return ImageResponse(
        data=result.value.data,
        mime_type=result.value.mime_type,
        credits=float(result.balance),
    )


@router.post("/generate-ad", response_model=ImageResponse)
async def generate_ad(
    request: GenerateAdRequest,
    user: UserRecord = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
) -> ImageResponse:
    """Compose an advertising image around a product photo."""
    if request.product_image is None:
        raise ValidationError("Product image is required.")

    result = await execute_paid_operation(
        user.id,
        CREDIT_COSTS["ad_image"],
        lambda: service.compose_ad(
            request.product_image,
            request.model_image,
            request.options,
            request.custom_prompt,
        ),
        operation="ad_image",
    )
    return ImageResponse(
        data=result.value.data,
        mime_type=result.value.mime_type,
        credits=float(result.balance),
    )


async def _optimize(
    user: UserRecord,
    request: PromptRequest,
    service: GenerationService,
    operation: str,
    video: bool,
) -> OptimizedPromptResponse:
    prompt = (request.prompt or "").strip()
    if not prompt:
        raise ValidationError("Prompt is required.")

    # Charged as min(cost, balance) so a small remainder still buys one call
    result = await execute_paid_operation(
        user.id,
        CREDIT_COSTS[operation],
        lambda: service.optimize_prompt(prompt, video=video),
        operation=operation,
        allow_partial=True,
    )
    return OptimizedPromptResponse(
        optimized_prompt=result.value, credits=float(result.balance)
    )


@router.post("/optimize-prompt", response_model=OptimizedPromptResponse)
async def optimize_prompt(
    request: PromptRequest,
    user: UserRecord = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
) -> OptimizedPromptResponse:
    """Rewrite a prompt to work better with image models."""
    return await _optimize(user, request, service, "prompt_optimization", video=False)


@router.post("/optimize-video-prompt", response_model=OptimizedPromptResponse)
async def optimize_video_prompt(
    request: PromptRequest,
    user: UserRecord = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
) -> OptimizedPromptResponse:
    """Rewrite a prompt to work better with video models."""
    return await _optimize(user, request, service, "video_prompt_optimization", video=True)
