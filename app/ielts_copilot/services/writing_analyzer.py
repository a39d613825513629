"""
IELTS writing analysis service using Gemini AI.
Encodes the uploaded images, assembles the examiner request and returns the
model's markdown feedback and band examples.
"""
from __future__ import annotations

from typing import Optional, Union

from flask import current_app

from .gemini_client import GeminiClient, get_gemini_client
from .ielts_prompts import (
    SYSTEM_INSTRUCTION,
    AnalysisRequest,
    WritingTaskType,
    build_user_parts,
    essay_from_inputs,
)
from .image_encoder import EncodedImage, ImageResource, encode_image


class WritingAnalyzer:
    """IELTS examiner-style feedback and model answers."""

    def __init__(self, client: Optional[GeminiClient] = None):
        self._client = client

    @property
    def client(self) -> GeminiClient:
        if self._client is None:
            self._client = get_gemini_client()
        return self._client

    def analyze(
        self,
        task_type: Union[str, WritingTaskType],
        topic: str,
        essay_text: Optional[str] = None,
        reference_image: Optional[ImageResource] = None,
        essay_image: Optional[ImageResource] = None,
    ) -> str:
        """
        Analyze an essay (or only generate band examples) for the given task.

        Args:
            task_type: 'Task 1' or 'Task 2'
            topic: The question prompt; must not be blank
            essay_text: Typed essay; ignored when essay_image is given
            reference_image: Task 1 chart/graph image
            essay_image: Photo of a handwritten essay

        Returns:
            Raw markdown text from the model

        Raises:
            ValidationError: blank topic or unknown task type
            EncodingFailure: an image could not be read
            CompletionFailure: the remote call failed
        """
        task = WritingTaskType.parse(task_type)

        # Images are encoded in send order so labels match parts.
        reference = self._encode(reference_image)
        essay_encoded = self._encode(essay_image)

        request = AnalysisRequest(
            task_type=task,
            topic=topic,
            essay=essay_from_inputs(essay_text, essay_encoded),
            reference=reference,
        )
        return self.run(request)

    def run(self, request: AnalysisRequest) -> str:
        """Send an assembled request to Gemini and return the response text."""
        parts = build_user_parts(request)
        config = current_app.config

        current_app.logger.info(
            f"Requesting IELTS analysis: task={request.task_type.value}, "
            f"essay={request.essay.kind}, images={len(request.images)}"
        )
        text = self.client.generate_text(
            parts,
            system_instruction=SYSTEM_INSTRUCTION,
            temperature=config.get('GEMINI_TEMPERATURE', 0.5),
            top_p=config.get('GEMINI_TOP_P', 0.95),
            thinking_budget=config.get('GEMINI_THINKING_BUDGET', 32768),
        )
        current_app.logger.info(f"IELTS analysis complete ({len(text)} chars)")
        return text

    @staticmethod
    def _encode(resource: Optional[ImageResource]) -> Optional[EncodedImage]:
        if resource is None:
            return None
        if isinstance(resource, EncodedImage):
            return resource
        return encode_image(resource)


def get_writing_analyzer() -> WritingAnalyzer:
    """Singleton getter for writing analyzer."""
    if not hasattr(current_app, 'writing_analyzer'):
        current_app.writing_analyzer = WritingAnalyzer()
    return current_app.writing_analyzer


def analyze(
    task_type: Union[str, WritingTaskType],
    topic: str,
    essay_text: Optional[str] = None,
    reference_image: Optional[ImageResource] = None,
    essay_image: Optional[ImageResource] = None,
) -> str:
    return get_writing_analyzer().analyze(task_type, topic, essay_text, reference_image, essay_image)
