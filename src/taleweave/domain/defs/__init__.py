"""Story definition exports."""

from .story_def import Choice, Story, StoryNode

__all__ = ["Choice", "Story", "StoryNode"]
