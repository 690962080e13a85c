"""依生成模式組裝送往 Gemini 的提示內容。"""

from __future__ import annotations

from typing import Dict, List, Optional

from ..common.errors import ValidationError
from .generation_types import (
    GarmentForm,
    GenerationMode,
    GenerationRequest,
    ImagePart,
    Part,
    TextPart,
)
from .image_normalizer import ImageNormalizer

SYSTEM_INSTRUCTION = """Objective: Act as a world-class e-commerce photographer, creative director, and digital stylist. Your task is to take the provided input image of a garment and generate a new, high-resolution, photorealistic image.

Mandates:
Integrate Garment: The generated model must be wearing the exact garment (color, texture, pattern) from the input image.
Photography Style: Use natural, professional studio lighting (softbox, gentle shadows). The depth of field should be shallow to keep the focus on the model and the clothing.
Model Quality: The model's skin, hair, and pose must be impeccable and highly realistic.
Background: Use a clean, solid, minimalist background (white, light gray, or soft beige) to eliminate distractions.
Focus: The garment must be wrinkle-free, perfectly fitted, and the central focus of the image."""

MODE_LABELS: Dict[GenerationMode, str] = {
    GenerationMode.AI_MODEL: "AI Model",
    GenerationMode.CUSTOM_MODEL: "My Model",
    GenerationMode.FLAT_LAY: "Flat Lay",
}

MODE_NOTES: Dict[GenerationMode, str] = {
    GenerationMode.AI_MODEL: (
        "The AI will generate a professional model based on your description "
        "wearing your garment."
    ),
    GenerationMode.CUSTOM_MODEL: (
        "The AI will transfer the garment from the first image (either flat or worn) "
        "onto the specific person in the second image."
    ),
    GenerationMode.FLAT_LAY: (
        "The AI will isolate the garment from your photo (even if worn) and create a "
        "professional, clean flat-lay studio shot."
    ),
}


class PromptAssembler:
    """
    將表單轉為 GenerationRequest，再組成有序的 parts：
    - AI_MODEL: [text, garment]
    - CUSTOM_MODEL: [text, garment, reference model]
    - FLAT_LAY: [text, garment]
    系統指令不併入 text part，而是另外以 system_instruction 傳遞。
    """

    def __init__(
        self,
        normalizer: Optional[ImageNormalizer] = None,
        system_instruction: str = SYSTEM_INSTRUCTION,
    ) -> None:
        self._normalizer = normalizer or ImageNormalizer()
        self.system_instruction = system_instruction

    # Public API -----------------------------------------------------------------

    def build_request(self, form: GarmentForm) -> GenerationRequest:
        """驗證表單後才正規化圖片，驗證失敗時不會解碼任何檔案。"""

        self._validate(
            form.mode,
            has_garment_image=form.garment_image is not None,
            garment_description=form.garment_description,
            model_spec=form.model_spec,
            pose=form.pose,
            has_reference_image=form.reference_model_image is not None,
        )

        garment_image = self._normalizer.normalize(form.garment_image)
        reference_image = None
        if form.mode is GenerationMode.CUSTOM_MODEL:
            reference_image = self._normalizer.normalize(form.reference_model_image)

        ai_model = form.mode is GenerationMode.AI_MODEL
        return GenerationRequest(
            mode=form.mode,
            garment_description=form.garment_description.strip(),
            garment_image=garment_image,
            model_spec=form.model_spec.strip() if ai_model else None,
            pose=form.pose.strip() if ai_model else None,
            reference_model_image=reference_image,
        )

    def assemble(self, request: GenerationRequest) -> List[Part]:
        self._validate(
            request.mode,
            has_garment_image=request.garment_image is not None,
            garment_description=request.garment_description,
            model_spec=request.model_spec,
            pose=request.pose,
            has_reference_image=request.reference_model_image is not None,
        )

        garment = ImagePart(request.garment_image)
        if request.mode is GenerationMode.CUSTOM_MODEL:
            text = self._custom_model_prompt(request.garment_description)
            return [TextPart(text), garment, ImagePart(request.reference_model_image)]
        if request.mode is GenerationMode.FLAT_LAY:
            return [TextPart(self._flat_lay_prompt(request.garment_description)), garment]
        text = self._ai_model_prompt(request.garment_description, request.model_spec, request.pose)
        return [TextPart(text), garment]

    @staticmethod
    def mode_notes() -> List[Dict[str, str]]:
        return [
            {"mode": mode.value, "label": MODE_LABELS[mode], "note": MODE_NOTES[mode]}
            for mode in GenerationMode
        ]

    # Internal helpers ------------------------------------------------------------

    @staticmethod
    def _validate(
        mode: GenerationMode,
        *,
        has_garment_image: bool,
        garment_description: Optional[str],
        model_spec: Optional[str],
        pose: Optional[str],
        has_reference_image: bool,
    ) -> None:
        if not has_garment_image:
            raise ValidationError("No garment image provided.")
        if not (garment_description or "").strip():
            raise ValidationError("Please describe the garment.")

        if mode is GenerationMode.AI_MODEL:
            if not (model_spec or "").strip():
                raise ValidationError("Please specify model details.")
            if not (pose or "").strip():
                raise ValidationError("Please specify the model pose.")
        elif mode is GenerationMode.CUSTOM_MODEL:
            if not has_reference_image:
                raise ValidationError("No model image provided for custom model mode.")

    @staticmethod
    def _ai_model_prompt(garment: str, model_spec: str, pose: str) -> str:
        return (
            "Task: **GARMENT SWAP AND PHOTOGRAPHY.**\n"
            f"Input Garment: The attached image is of {garment}. "
            "Integrate this garment onto the model below.\n"
            f"Model and Styling Requirements: {model_spec}.\n"
            f"Pose and Scene: Set in a professional studio. {pose}.\n"
            "Output: Generate one high-fidelity, photorealistic, professional e-commerce image."
        )

    @staticmethod
    def _custom_model_prompt(garment: str) -> str:
        return (
            "Task: **VIRTUAL TRY-ON / GARMENT TRANSFER**\n"
            "Input 1 (Source): The first attached image contains the garment to be "
            f"transferred: {garment}. NOTE: This image may show the garment alone "
            "(flat lay) OR worn by another person.\n"
            "Input 2 (Target Person): The second attached image is the recipient model.\n"
            "Instruction: Transfer the garment from Input 1 onto the person in Input 2.\n"
            f"- **Source Extraction**: Identify the {garment} in Input 1. "
            "If worn by a model, extract only the garment.\n"
            "- **Target Integrity**: STRICTLY preserve Input 2's face, identity, hair, pose, "
            "body shape, and original background. Only the clothing should change.\n"
            "- **Realistic Fit**: Warp and drape the garment to naturally fit the body and "
            "pose of the person in Input 2.\n"
            "- **Lighting Match**: Adjust the garment's lighting and shadows to match the "
            "environment of Input 2 perfectly.\n"
            "Output: A high-fidelity photorealistic image of the person in Input 2 wearing "
            "the garment from Input 1."
        )

    @staticmethod
    def _flat_lay_prompt(garment: str) -> str:
        return (
            "Task: **PROFESSIONAL FLAT LAY PHOTOGRAPHY**\n"
            f"Input: The attached image contains the garment: {garment}. NOTE: This image "
            "may show the garment worn by a model or in a cluttered environment.\n"
            "Instruction: Generate a high-end, professional e-commerce flat lay image of "
            "this specific garment.\n"
            f"- **Extraction**: Isolate the {garment} from the input image. Remove any human "
            "models, body parts, or background clutter.\n"
            "- **Styling**: Arrange the garment neatly on a flat surface as if prepared for "
            "a luxury catalog. Smooth out wrinkles while maintaining natural fabric texture "
            "and drape. Ensure the full garment is visible and symmetrically arranged.\n"
            "- **Lighting**: Use soft, even, top-down studio lighting to highlight fabric "
            "details, patterns, and true colors. Avoid harsh shadows.\n"
            "- **Background**: Use a pristine, solid white or very soft light gray background.\n"
            "Output: One photorealistic flat lay image suitable for a luxury online store."
        )
