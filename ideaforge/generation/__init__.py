"""Generation orchestration: slots, pipeline stages, scoring and scheduling."""

from ideaforge.generation.pipeline import GenerationPipeline, make_folder_name
from ideaforge.generation.prompts import PromptBuilder
from ideaforge.generation.response_parser import ResponseParser
from ideaforge.generation.scheduler import AutoGenerationScheduler
from ideaforge.generation.scoring import ScoringAggregator
from ideaforge.generation.slot_manager import SessionHandle, SlotManager

__all__ = [
    "AutoGenerationScheduler",
    "GenerationPipeline",
    "PromptBuilder",
    "ResponseParser",
    "ScoringAggregator",
    "SessionHandle",
    "SlotManager",
    "make_folder_name",
]
