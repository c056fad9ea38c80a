"""Synthetic scene generation for testing."""

from .scene_gen import SceneGenerator, SyntheticScene, make_ring_scene, make_two_view

__all__ = [
    "SceneGenerator",
    "SyntheticScene",
    "make_ring_scene",
    "make_two_view",
]
