"""
ReliefForge - normal maps and relit previews from flat images

Provides:
- Clamped RGBA pixel math and an absent-aware pixel buffer
- 3x3 mean smoothing
- Sobel-based tangent-space normal map extraction
- Diffuse + specular relighting driven by light and eye vectors
- Packed BGRA byte codec for interop with image libraries
"""

__version__ = "0.1.0"
__author__ = "ReliefForge Team"

from .vec3 import Vec3
from .errors import ReliefForgeError, InvalidArgumentError, EmptyNeighborhoodError, ConfigError
from .pixel import Pixel, pack_component, unpack_component, mean, scale
from .pixel_buffer import PixelBuffer
from .codec import decode_buffer, encode_buffer
from .filters import smooth, normal_map, relight, light_intensity, decode_normal, intensity_map
from .config import RelightSettings, load_settings, settings_from_dict
from .preview import Lighting, RelightPreview
