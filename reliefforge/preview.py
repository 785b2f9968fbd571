"""
Relight preview session.

Keeps a source image together with the normal map derived from it, so
the relit preview can be redrawn cheaply as the light and eye vectors
change. The normal map is only rebuilt when the strength changes.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Optional
import logging

from .config import RelightSettings
from .filters import smooth, normal_map, relight, VectorLike, as_vector
from .pixel_buffer import PixelBuffer
from .vec3 import Vec3

LOGGER = logging.getLogger("reliefforge.preview")


@dataclass(frozen=True)
class Lighting:
    """Light and eye vectors for one relight pass."""
    light: Vec3 = field(default_factory=Vec3)
    eye: Vec3 = field(default_factory=Vec3)

    @classmethod
    def of(cls, light: VectorLike, eye: VectorLike) -> Lighting:
        """Build from Vec3s or 3-sequences."""
        return cls(
            light=Vec3.from_array(as_vector(light, "light")),
            eye=Vec3.from_array(as_vector(eye, "eye")),
        )

    def with_light(self, light: VectorLike) -> Lighting:
        return replace(self, light=Vec3.from_array(as_vector(light, "light")))

    def with_eye(self, eye: VectorLike) -> Lighting:
        return replace(self, eye=Vec3.from_array(as_vector(eye, "eye")))


class RelightPreview:
    """A source image, its normal map and the settings that produced it."""

    def __init__(self, source: PixelBuffer, settings: Optional[RelightSettings] = None):
        """Create a preview session and build the initial normal map.

        Args:
            source: Image to relight
            settings: Pipeline configuration (uses defaults if None)
        """
        self.source = source
        self.settings = settings if settings else RelightSettings()
        self._normal_map = self._build_normal_map(self.settings.strength)

    @property
    def strength(self) -> float:
        return self.settings.strength

    @property
    def normal_map(self) -> PixelBuffer:
        return self._normal_map

    @property
    def lighting(self) -> Lighting:
        """Lighting taken from the settings."""
        return Lighting(self.settings.light, self.settings.eye)

    def set_strength(self, strength: float) -> PixelBuffer:
        """Rebuild the normal map at a new strength and return it.

        The session is left unchanged if the strength is rejected.
        """
        normals = self._build_normal_map(strength)
        self.settings = replace(self.settings, strength=strength)
        self._normal_map = normals
        return normals

    def render(self, lighting: Optional[Lighting] = None) -> PixelBuffer:
        """Relight the (unsmoothed) source with the current normal map."""
        lighting = lighting if lighting is not None else self.lighting
        return relight(
            self.source,
            self._normal_map,
            lighting.light,
            lighting.eye,
            num_threads=self.settings.num_threads,
            band_height=self.settings.band_height,
        )

    def _build_normal_map(self, strength: float) -> PixelBuffer:
        LOGGER.info(
            "Building %dx%d normal map (strength=%s, smooth=%s)",
            self.source.width, self.source.height, strength, self.settings.smooth,
        )
        base = self.source
        if self.settings.smooth:
            base = smooth(
                base,
                num_threads=self.settings.num_threads,
                band_height=self.settings.band_height,
            )
        return normal_map(
            base,
            strength,
            num_threads=self.settings.num_threads,
            band_height=self.settings.band_height,
        )
