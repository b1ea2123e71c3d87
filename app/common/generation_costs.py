import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class GenerationAction(str, Enum):
    IMAGE_GENERATION = "image_generation"
    IMAGE_TO_IMAGE = "image_to_image"
    THUMBNAIL_GENERATION = "thumbnail_generation"
    TEXT_TO_IMAGE = "text_to_image"
    AVATAR_GENERATION = "avatar_generation"
    MUSIC_GENERATION = "music_generation"
    VIDEO_GENERATION = "video_generation"
    SOUND_EFFECT = "sound_effect"
    RUNWAY_VIDEO = "runway_video"


@dataclass
class CostInfo:
    cost: int
    model: Optional[str] = None
    description: str = ""


class GenerationCostManager:
    """Price list for paid generation actions, in credits."""

    _costs: Dict[GenerationAction, CostInfo] = {
        GenerationAction.IMAGE_GENERATION: CostInfo(
            cost=2, model="imagen", description="Image generation"
        ),
        GenerationAction.IMAGE_TO_IMAGE: CostInfo(
            cost=2, model="imagen", description="Image to image"
        ),
        GenerationAction.THUMBNAIL_GENERATION: CostInfo(
            cost=4, model="imagen", description="Thumbnail generation"
        ),
        GenerationAction.TEXT_TO_IMAGE: CostInfo(
            cost=5, model="leonardo", description="Text to image"
        ),
        GenerationAction.AVATAR_GENERATION: CostInfo(
            cost=10, model="leonardo", description="Avatar generation"
        ),
        GenerationAction.MUSIC_GENERATION: CostInfo(
            cost=10, model="suno", description="Music generation"
        ),
        GenerationAction.VIDEO_GENERATION: CostInfo(
            cost=15, model="veo", description="Video generation"
        ),
        GenerationAction.SOUND_EFFECT: CostInfo(
            cost=1, model="elevenlabs", description="Sound effect"
        ),
        GenerationAction.RUNWAY_VIDEO: CostInfo(
            cost=5, model="runway", description="Runway video"
        ),
    }

    HIGH_QUALITY_TEXT_TO_IMAGE_COST = 8
    VIDEO_CLIP_SECONDS = 8
    SOUND_EFFECT_SECONDS_PER_CREDIT = 6

    @classmethod
    def get_cost_info(cls, action: GenerationAction) -> CostInfo:
        if action not in cls._costs:
            raise ValueError(f"Invalid generation action: {action}")
        return cls._costs[action]

    @classmethod
    def get_model(cls, action: GenerationAction) -> Optional[str]:
        return cls.get_cost_info(action).model

    @classmethod
    def calculate_cost(
        cls,
        action: GenerationAction,
        quality: Optional[str] = None,
        clips: int = 1,
        duration: Optional[int] = None,
        credits_per_second: Optional[int] = None,
    ) -> int:
        """
        Price a generation request.

        Args:
            action: Kind of generation
            quality: "high" selects the premium text-to-image price
            clips: Number of video clips (video generation)
            duration: Length in seconds (sound effects, runway video)
            credits_per_second: Per-second rate for runway video

        Returns:
            int: Credits to deduct, always >= 1
        """
        base = cls.get_cost_info(action).cost

        if action == GenerationAction.TEXT_TO_IMAGE and quality == "high":
            return cls.HIGH_QUALITY_TEXT_TO_IMAGE_COST

        if action == GenerationAction.VIDEO_GENERATION:
            if clips < 1:
                raise ValueError("clips must be at least 1")
            return base * clips * cls.VIDEO_CLIP_SECONDS

        if action == GenerationAction.SOUND_EFFECT:
            seconds = duration or cls.SOUND_EFFECT_SECONDS_PER_CREDIT
            return max(1, math.ceil(seconds / cls.SOUND_EFFECT_SECONDS_PER_CREDIT))

        if action == GenerationAction.RUNWAY_VIDEO:
            rate = credits_per_second if credits_per_second is not None else base
            return max(1, rate * (duration or 5))

        return base

    @classmethod
    def get_all_costs(cls) -> Dict[str, Dict]:
        return {
            action.value: {
                "cost": info.cost,
                "model": info.model,
                "description": info.description,
            }
            for action, info in cls._costs.items()
        }
