"""Gemini / Imagen adapter for the Image AI Service.

Every image response is classified into one outcome of
:data:`src.domain.entities.generation.GenerationOutcome`; anything other than
an image becomes :class:`GenerationFailed`. Nothing here retries.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
from io import BytesIO
from typing import Any, Callable

from google import genai
from google.genai import types
from PIL import Image, ImageEnhance, ImageOps

from src.domain.entities.artifact import Hotspot, ImageArtifact
from src.domain.entities.generation import (
    ASPECT_RATIOS,
    GenerationOutcome,
    ImageReturned,
    NoImageReturned,
    PromptBlocked,
    StoppedEarly,
)
from src.domain.errors import GenerationFailed
from src.domain.services.artifact_codec import bytes_to_data_url
from src.infrastructure.settings import AppSettings

logger = logging.getLogger(__name__)

# Only sexually explicit content is filtered; the other categories pass through.
SAFETY_SETTINGS = [
    types.SafetySetting(
        category=types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        threshold=types.HarmBlockThreshold.BLOCK_NONE,
    ),
    types.SafetySetting(
        category=types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        threshold=types.HarmBlockThreshold.BLOCK_NONE,
    ),
    types.SafetySetting(
        category=types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        threshold=types.HarmBlockThreshold.BLOCK_NONE,
    ),
    types.SafetySetting(
        category=types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    ),
]

EDIT_PROMPT = """You are an expert photo editor AI. Perform a natural, localized edit on the provided image.
User Request: "{prompt}"
Edit Location: the area around pixel coordinates (x: {x}, y: {y}).

Guidelines:
- The edit must be realistic and blend seamlessly with its surroundings.
- Everything outside the immediate edit area must stay identical to the original.

Output: Return ONLY the final edited image. Do not return text."""

FILTER_PROMPT = """You are an expert photo editor AI. Apply a stylistic filter to the entire image.
Keep the composition and content unchanged; only change the style.
Filter Request: "{prompt}"

Output: Return ONLY the final filtered image. Do not return text."""

ADJUST_PROMPT = """You are an expert photo editor AI. Perform a natural, global adjustment to the entire image.
User Request: "{prompt}"

Guidelines:
- Apply the adjustment across the whole image.
- The result must be photorealistic.

Output: Return ONLY the final adjusted image. Do not return text."""

UPSCALE_PROMPT = """You are an expert photo editor AI specialising in image enhancement.
Upscale the provided image, increasing its resolution and clarity to a 4k quality result.
Do not add, remove or change any content in the image; the output must be a photorealistic,
higher-resolution version of the original.

Output: Return ONLY the final upscaled image. Do not return text."""

IMPROVE_PROMPT_INSTRUCTION = """You are an expert prompt engineer for a text-to-image model.
Expand the user's simple idea into a rich, detailed prompt: subject, scene, lighting
(e.g. 'cinematic lighting', 'golden hour'), style (e.g. 'photorealistic', 'digital art')
and camera details (e.g. 'wide-angle shot', 'macro photo').
Return a comma-separated list of keywords and phrases and nothing else."""


def _enum_name(value: Any) -> str:
    return getattr(value, "name", None) or str(value)


def classify_response(response: Any) -> GenerationOutcome:
    """Reduce a ``generate_content`` response to exactly one outcome."""
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback is not None else None
    if block_reason:
        return PromptBlocked(
            reason=_enum_name(block_reason),
            message=getattr(feedback, "block_reason_message", None),
        )

    candidates = getattr(response, "candidates", None) or []
    first = candidates[0] if candidates else None
    content = getattr(first, "content", None)
    parts = getattr(content, "parts", None) or []
    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return ImageReturned(bytes_to_data_url(inline.data, inline.mime_type or "image/png"))

    finish_reason = getattr(first, "finish_reason", None)
    if finish_reason is not None and _enum_name(finish_reason) != "STOP":
        return StoppedEarly(finish_reason=_enum_name(finish_reason))

    text = " ".join(p.text for p in parts if getattr(p, "text", None)).strip()
    return NoImageReturned(text=text or None)


def classify_images_response(response: Any) -> GenerationOutcome:
    """Reduce a ``generate_images`` (Imagen) response to exactly one outcome."""
    generated = getattr(response, "generated_images", None) or []
    if generated:
        first = generated[0]
        image = getattr(first, "image", None)
        data = getattr(image, "image_bytes", None)
        if data:
            return ImageReturned(bytes_to_data_url(data, getattr(image, "mime_type", None) or "image/jpeg"))
        filtered = getattr(first, "rai_filtered_reason", None)
        if filtered:
            return PromptBlocked(reason="RAI_FILTERED", message=filtered)
    return NoImageReturned()


def unwrap_outcome(outcome: GenerationOutcome, context: str) -> str:
    """Return the image data URL or raise :class:`GenerationFailed`."""
    if isinstance(outcome, ImageReturned):
        logger.info("Received image data for %s", context)
        return outcome.data_url
    if isinstance(outcome, PromptBlocked):
        detail = f"Request was blocked. Reason: {outcome.reason}. {outcome.message or ''}".strip()
    elif isinstance(outcome, StoppedEarly):
        detail = (
            "Image generation stopped unexpectedly. "
            f"Reason: {outcome.finish_reason}. This often relates to safety settings."
        )
    else:
        detail = "The AI model did not return an image. " + (
            f'The model responded with text: "{outcome.text}"'
            if outcome.text
            else "This can happen due to safety filters or if the request is too complex. "
            "Please try rephrasing your prompt to be more direct."
        )
    logger.warning("Generation failed for %s: %s", context, detail)
    raise GenerationFailed(context, detail)


def _validate_aspect_ratio(aspect_ratio: str) -> None:
    if aspect_ratio not in ASPECT_RATIOS:
        raise ValueError(f"Unsupported aspect ratio {aspect_ratio!r}; expected one of {ASPECT_RATIOS}")


class GeminiImageGateway:
    """Image AI Service backed by the google-genai SDK.

    The SDK is synchronous, so each call runs in a worker thread and is bounded
    by ``timeout`` seconds.
    """

    def __init__(self, settings: AppSettings, client: Any | None = None) -> None:
        if client is None:
            if not settings.gemini_api_key:
                raise ValueError("GEMINI_API_KEY environment variable not set")
            client = genai.Client(api_key=settings.gemini_api_key)
        self.client = client
        self.image_model = settings.gemini_image_model
        self.text_model = settings.gemini_text_model
        self.imagen_model = settings.imagen_model
        self.timeout = settings.ai_timeout_seconds

    async def _call(self, context: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, **kwargs), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise GenerationFailed(
                context, f"The AI service did not respond within {self.timeout:g} seconds."
            ) from exc

    async def _image_request(self, context: str, artifact: ImageArtifact, prompt: str) -> str:
        logger.info("Sending %s request for %s (%d bytes)", context, artifact.name, artifact.size)
        response = await self._call(
            context,
            self.client.models.generate_content,
            model=self.image_model,
            contents=[
                types.Part.from_bytes(data=artifact.data, mime_type=artifact.mime_type),
                types.Part.from_text(text=prompt),
            ],
            config=types.GenerateContentConfig(
                response_modalities=["IMAGE", "TEXT"],
                safety_settings=SAFETY_SETTINGS,
            ),
        )
        return unwrap_outcome(classify_response(response), context)

    async def generate_image(self, prompt: str, aspect_ratio: str) -> str:
        _validate_aspect_ratio(aspect_ratio)
        logger.info("Starting image generation (aspect ratio %s)", aspect_ratio)
        response = await self._call(
            "generate image",
            self.client.models.generate_images,
            model=self.imagen_model,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type="image/jpeg",
                aspect_ratio=aspect_ratio,
            ),
        )
        return unwrap_outcome(classify_images_response(response), "generate image")

    async def edit_image(self, artifact: ImageArtifact, prompt: str, hotspot: Hotspot) -> str:
        text = EDIT_PROMPT.format(prompt=prompt, x=hotspot.x, y=hotspot.y)
        return await self._image_request("edit image", artifact, text)

    async def filter_image(self, artifact: ImageArtifact, prompt: str) -> str:
        return await self._image_request("apply filter", artifact, FILTER_PROMPT.format(prompt=prompt))

    async def adjust_image(self, artifact: ImageArtifact, prompt: str) -> str:
        return await self._image_request("adjust image", artifact, ADJUST_PROMPT.format(prompt=prompt))

    async def upscale_image(self, artifact: ImageArtifact) -> str:
        return await self._image_request("upscale image", artifact, UPSCALE_PROMPT)

    async def improve_prompt(self, text: str) -> str:
        response = await self._call(
            "improve prompt",
            self.client.models.generate_content,
            model=self.text_model,
            contents=f'User idea: "{text}"',
            config=types.GenerateContentConfig(
                system_instruction=IMPROVE_PROMPT_INSTRUCTION,
                temperature=0.8,
                safety_settings=SAFETY_SETTINGS,
            ),
        )
        improved = (getattr(response, "text", None) or "").strip()
        if not improved:
            raise GenerationFailed("improve prompt", "The AI model did not return an improved prompt.")
        return improved


class OfflineImageGateway:
    """Deterministic local stand-in used when GEMINI_DISABLED=1.

    Images are produced with Pillow so the editing flow can run without network
    access; results are always successful.
    """

    base_size = 256

    def _encode(self, img: Image.Image, fmt: str = "PNG") -> str:
        buf = BytesIO()
        if fmt == "JPEG":
            img = img.convert("RGB")
        img.save(buf, format=fmt)
        return bytes_to_data_url(buf.getvalue(), f"image/{fmt.lower()}")

    def _open(self, artifact: ImageArtifact) -> Image.Image:
        return Image.open(BytesIO(artifact.data)).convert("RGB")

    async def generate_image(self, prompt: str, aspect_ratio: str) -> str:
        _validate_aspect_ratio(aspect_ratio)
        w_ratio, h_ratio = (int(v) for v in aspect_ratio.split(":"))
        scale = self.base_size / max(w_ratio, h_ratio)
        size = (max(1, round(w_ratio * scale)), max(1, round(h_ratio * scale)))
        digest = hashlib.sha256(prompt.encode("utf-8")).digest()
        return self._encode(Image.new("RGB", size, tuple(digest[:3])), "JPEG")

    async def edit_image(self, artifact: ImageArtifact, prompt: str, hotspot: Hotspot) -> str:
        img = self._open(artifact)
        x = min(max(hotspot.x, 0), img.width - 1)
        y = min(max(hotspot.y, 0), img.height - 1)
        img.putpixel((x, y), (255, 255, 255))
        return self._encode(img)

    async def filter_image(self, artifact: ImageArtifact, prompt: str) -> str:
        return self._encode(ImageOps.posterize(self._open(artifact), 4))

    async def adjust_image(self, artifact: ImageArtifact, prompt: str) -> str:
        return self._encode(ImageEnhance.Brightness(self._open(artifact)).enhance(1.1))

    async def upscale_image(self, artifact: ImageArtifact) -> str:
        img = self._open(artifact)
        return self._encode(img.resize((img.width * 2, img.height * 2), Image.Resampling.LANCZOS), "JPEG")

    async def improve_prompt(self, text: str) -> str:
        return f"{text.strip()}, highly detailed, cinematic lighting, photorealistic"


def build_image_gateway(settings: AppSettings) -> GeminiImageGateway | OfflineImageGateway:
    if settings.gemini_disabled:
        return OfflineImageGateway()
    return GeminiImageGateway(settings)
