"""
Request assembly for IELTS writing analysis.
Holds the fixed examiner instruction and builds the multi-part user message.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import ValidationError
from .image_encoder import EncodedImage


class WritingTaskType(str, Enum):
    TASK_1 = 'Task 1'
    TASK_2 = 'Task 2'

    @classmethod
    def parse(cls, value: Union[str, 'WritingTaskType', None]) -> 'WritingTaskType':
        """Accept 'Task 1', 'task1', '1' and similar spellings."""
        if isinstance(value, cls):
            return value
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"Unknown writing task type: {value!r}")
        normalized = (value or '').strip().lower().replace(' ', '').replace('_', '')
        if normalized in {'task1', '1'}:
            return cls.TASK_1
        if normalized in {'task2', '2'}:
            return cls.TASK_2
        raise ValidationError(f"Unknown writing task type: {value!r}")

    @property
    def minimum_words(self) -> int:
        return 150 if self is WritingTaskType.TASK_1 else 250

    @property
    def example_word_range(self) -> tuple[int, int]:
        return (150, 180) if self is WritingTaskType.TASK_1 else (250, 280)


@dataclass(frozen=True)
class TextEssay:
    content: str
    kind: str = 'text'


@dataclass(frozen=True)
class ImageEssay:
    image: EncodedImage
    kind: str = 'image'


@dataclass(frozen=True)
class NoEssay:
    kind: str = 'none'


EssayInput = Union[TextEssay, ImageEssay, NoEssay]


def essay_from_inputs(essay_text: Optional[str], essay_image: Optional[EncodedImage] = None) -> EssayInput:
    """Pick the single active essay input; an image wins over text, blank text counts as absent."""
    if essay_image is not None:
        return ImageEssay(essay_image)
    trimmed = (essay_text or '').strip()
    if trimmed:
        return TextEssay(trimmed)
    return NoEssay()


@dataclass(frozen=True)
class AnalysisRequest:
    task_type: WritingTaskType
    topic: str
    essay: EssayInput = NoEssay()
    reference: Optional[EncodedImage] = None

    def __post_init__(self):
        if not self.topic or not self.topic.strip():
            raise ValidationError("Please provide a topic for your writing task.")

    @property
    def has_essay(self) -> bool:
        return not isinstance(self.essay, NoEssay)

    @property
    def images(self) -> List[EncodedImage]:
        """Images in the order they are sent: chart reference, then essay."""
        ordered = []
        if self.reference is not None:
            ordered.append(self.reference)
        if isinstance(self.essay, ImageEssay):
            ordered.append(self.essay.image)
        return ordered


SYSTEM_INSTRUCTION = """You are an IELTS Writing Expert and World-Class Examiner who evaluates IELTS Writing Task 1 and Task 2 based on official IELTS Band Descriptors (Task Achievement, Coherence & Cohesion, Lexical Resource, and Grammatical Range & Accuracy).
You must analyze and grade essays exactly like an IELTS examiner, provide detailed feedback, and also generate model answers for Band 6, 7, 8, and 9 versions.

Your response must always follow this exact structure, using Markdown for formatting. Do not add any other text, greetings, or explanations outside of this structure:

### IELTS Writing Analysis

**Predicted Band Score:** [Band X.X]

#### 🔍 Score Breakdown:
- Task Achievement: X/9
- Coherence & Cohesion: X/9
- Lexical Resource: X/9
- Grammatical Range & Accuracy: X/9

#### 🧾 Feedback:
- [Detailed explanation of strengths and weaknesses based on the official band descriptors.]
- [Actionable suggestions for improvement and what to focus on next time.]

---

### 🧠 Example Responses by Band Level

#### Band 6 Example:
[150 or 250-word essay]

#### Band 7 Example:
[150 or 250-word essay]

#### Band 8 Example:
[150 or 250-word essay]

#### Band 9 Example:
[150 or 250-word essay]

**Important Rules:**
- If the user provides an essay (text or handwritten image), you MUST provide the "IELTS Writing Analysis" section.
- The Predicted Band Score is a single value with one decimal place between 0.0 and 9.0. Each criterion in the Score Breakdown is scored from 0 to 9.
- If the user provides a handwritten essay image, transcribe it internally to analyze it. If the handwriting is illegible, mention this in the feedback.
- If NO essay is provided (neither text nor image), you MUST OMIT the entire "IELTS Writing Analysis" section (including its header, score, breakdown, and feedback) and ONLY provide the "Example Responses by Band Level" section.
- Always write in a formal IELTS academic tone.
- Ensure essays strictly follow IELTS structure (introduction, overview/body paragraphs, conclusion).
- For Task 1, ensure responses accurately summarize and report the main features of any provided data/image. Do not give an opinion.
- For Task 2, ensure responses have a clear position, well-developed arguments with examples, and a strong conclusion.
- Use British English spelling (e.g., “organisation”, “analyse”).
- Keep the total word count for generated essays within the recommended range (Task 1: 150–180 words, Task 2: 250–280 words)."""

REFERENCE_IMAGE_NOTE = "attached is the Task 1 Question Reference (Chart/Graph)."
ESSAY_IMAGE_NOTE = (
    "attached is the User's Handwritten Essay. Please transcribe this image internally "
    "and analyze the essay content contained within it."
)
NO_ESSAY_NOTE = "User's Essay: [NO ESSAY PROVIDED]"
CLOSING_NOTE = "Please provide the analysis and/or model answers as instructed in your system prompt."


def compose_user_text(request: AnalysisRequest) -> str:
    """Build the text part describing the task, the attached images and the essay."""
    lines = [
        "User Request:",
        f"Task Type: {request.task_type.value}",
        f"Topic: {request.topic.strip()}",
        "",
    ]

    image_index = 0
    if request.reference is not None:
        image_index += 1
        lines.append(f"[Image {image_index}] {REFERENCE_IMAGE_NOTE}")

    essay = request.essay
    if isinstance(essay, ImageEssay):
        image_index += 1
        lines.append(f"[Image {image_index}] {ESSAY_IMAGE_NOTE}")
    elif isinstance(essay, TextEssay) and essay.content.strip():
        lines.append(f"User's Essay Text:\n---\n{essay.content.strip()}\n---")
    else:
        lines.append(NO_ESSAY_NOTE)

    lines.append(CLOSING_NOTE)
    return "\n".join(lines)


def build_user_parts(request: AnalysisRequest) -> List[Dict[str, Any]]:
    """Image parts first (reference, then essay) followed by exactly one text part."""
    parts = [image.to_part() for image in request.images]
    parts.append({"text": compose_user_text(request)})
    return parts
