import pytest

from app.common.generation_costs import GenerationAction, GenerationCostManager


@pytest.mark.parametrize(
    "action, kwargs, expected",
    [
        (GenerationAction.IMAGE_GENERATION, {}, 2),
        (GenerationAction.THUMBNAIL_GENERATION, {}, 4),
        (GenerationAction.TEXT_TO_IMAGE, {}, 5),
        (GenerationAction.TEXT_TO_IMAGE, {"quality": "high"}, 8),
        (GenerationAction.MUSIC_GENERATION, {}, 10),
        (GenerationAction.VIDEO_GENERATION, {"clips": 1}, 120),
        (GenerationAction.VIDEO_GENERATION, {"clips": 3}, 360),
        (GenerationAction.SOUND_EFFECT, {"duration": 4}, 1),
        (GenerationAction.SOUND_EFFECT, {"duration": 13}, 3),
        (GenerationAction.RUNWAY_VIDEO, {}, 25),
        (GenerationAction.RUNWAY_VIDEO, {"duration": 10, "credits_per_second": 2}, 20),
    ],
)
def test_calculate_cost(action, kwargs, expected):
    assert GenerationCostManager.calculate_cost(action, **kwargs) == expected


def test_video_generation_requires_a_clip():
    with pytest.raises(ValueError):
        GenerationCostManager.calculate_cost(GenerationAction.VIDEO_GENERATION, clips=0)


def test_get_all_costs_lists_every_action():
    costs = GenerationCostManager.get_all_costs()

    assert set(costs) == {action.value for action in GenerationAction}
    assert costs["video_generation"]["model"] == "veo"
