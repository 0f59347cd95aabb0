"""Raster image transforms backed by Pillow."""

from __future__ import annotations

import base64
import io
import logging

from PIL import Image, ImageFilter, UnidentifiedImageError, features

from assetlink.errors import DecodeFailed, EncodeFailed, UnsupportedConversion
from assetlink.manifest.options import ImageFormat, ImageOptions
from assetlink.pipeline.base import TransformOutput

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 80
PREVIEW_QUALITY = 40
PREVIEW_BLUR_RADIUS = 1.0

_HIGH_BIT_MODES = {"I", "I;16", "I;16B", "I;16L", "I;16N", "F"}
# PNG can carry 16-bit grayscale; every other target is 8 bits per channel.
_PNG_HIGH_BIT_MODES = {"I", "I;16", "I;16B", "I;16L", "I;16N"}

_TARGETS = {
    ImageFormat.PNG: "PNG",
    ImageFormat.JPEG: "JPEG",
    ImageFormat.WEBP: "WEBP",
    ImageFormat.AVIF: "AVIF",
}

# Source formats that "original" can re-encode.
_ORIGINAL_FORMATS = {"PNG": "PNG", "JPEG": "JPEG", "MPO": "JPEG", "WEBP": "WEBP", "AVIF": "AVIF", "GIF": "GIF"}

_EXTENSIONS = {"PNG": "png", "JPEG": "jpg", "WEBP": "webp", "AVIF": "avif", "GIF": "gif"}
_MIME_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "AVIF": "image/avif",
    "GIF": "image/gif",
}

# Encoders provided by optional native libraries.
_OPTIONAL_ENCODERS = {"WEBP": "webp", "AVIF": "avif"}


def decode_image(data: bytes) -> Image.Image:
    """Decode image bytes fully, mapping every decoder failure to ``DecodeFailed``."""

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise DecodeFailed(f"Unable to decode image: {exc}") from exc
    return image


def transform_image(data: bytes, options: ImageOptions, *, preview_width: int = 24) -> TransformOutput:
    """Decode, resize and re-encode one image according to ``options``."""

    image = decode_image(data)
    target = _target_format(options.format, image.format)
    _check_depth(image, target, options)

    image = _normalize_mode(image)
    image = _downscale(image, options)
    encoded = _encode(image, target, options)

    output = TransformOutput(
        extension=_EXTENSIONS[target],
        data=encoded,
        mime=_MIME_TYPES[target],
    )
    if options.preview:
        try:
            output.preview = preview_data_url(image, preview_width)
        except (OSError, ValueError) as exc:
            raise EncodeFailed(f"Unable to render preview: {exc}") from exc
    if options.url_encoded:
        output.data_url = data_url(encoded, _MIME_TYPES[target])
    logger.debug(
        "Encoded %sx%s %s image to %s (%s -> %s bytes)",
        image.width,
        image.height,
        image.mode,
        target,
        len(data),
        len(encoded),
    )
    return output


def preview_data_url(image: Image.Image, width: int) -> str:
    """Return a tiny blurred JPEG of ``image`` as a data URL."""

    source = _flatten(image, "#ffffff") if _has_alpha(image) else image.convert("RGB")
    if source.width > width:
        height = max(1, round(source.height * width / source.width))
        source = source.resize((width, height), Image.Resampling.LANCZOS)
    blurred = source.filter(ImageFilter.GaussianBlur(radius=PREVIEW_BLUR_RADIUS))
    buffer = io.BytesIO()
    blurred.save(buffer, "JPEG", quality=PREVIEW_QUALITY)
    return data_url(buffer.getvalue(), "image/jpeg")


def data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def _target_format(requested: ImageFormat, source_format: str | None) -> str:
    if requested is not ImageFormat.ORIGINAL:
        return _TARGETS[requested]
    target = _ORIGINAL_FORMATS.get((source_format or "").upper())
    if target is None:
        raise UnsupportedConversion(
            f"Cannot re-encode {source_format or 'unknown'} images in their original format"
        )
    return target


def _check_depth(image: Image.Image, target: str, options: ImageOptions) -> None:
    if image.mode not in _HIGH_BIT_MODES:
        return
    if target == "PNG" and image.mode in _PNG_HIGH_BIT_MODES and options.palette_colors is None:
        return
    raise UnsupportedConversion(f"{image.mode} images cannot be encoded as 8-bit {target}")


def _normalize_mode(image: Image.Image) -> Image.Image:
    mode = image.mode
    if mode == "P":
        return image.convert("RGBA" if "transparency" in image.info else "RGB")
    if mode == "PA":
        return image.convert("RGBA")
    if mode == "1":
        return image.convert("L")
    if mode in ("RGBa", "La"):
        return image.convert("RGBA" if mode == "RGBa" else "LA")
    if mode in ("CMYK", "YCbCr", "LAB", "HSV"):
        return image.convert("RGB")
    return image


def _downscale(image: Image.Image, options: ImageOptions) -> Image.Image:
    if options.max_width is None and options.max_height is None:
        return image
    bound = (options.max_width or image.width, options.max_height or image.height)
    if image.width <= bound[0] and image.height <= bound[1]:
        return image
    resized = image.copy()
    try:
        resized.thumbnail(bound, Image.Resampling.LANCZOS)
    except ValueError as exc:
        raise UnsupportedConversion(f"Cannot resample {image.mode} image: {exc}") from exc
    return resized


def _encode(image: Image.Image, target: str, options: ImageOptions) -> bytes:
    module = _OPTIONAL_ENCODERS.get(target)
    if module is not None and not features.check(module):
        raise EncodeFailed(f"Pillow was built without the {target} encoder")

    quality = _clamp_quality(options.quality)
    buffer = io.BytesIO()
    try:
        if target == "JPEG":
            _to_jpeg(image, options).save(buffer, "JPEG", quality=quality, optimize=True)
        elif target == "PNG":
            _to_png(image, options).save(buffer, "PNG", optimize=True)
        elif target == "WEBP":
            _to_rgb_family(image).save(
                buffer, "WEBP", quality=quality, lossless=options.lossless, method=4
            )
        elif target == "AVIF":
            _to_rgb_family(image).save(buffer, "AVIF", quality=100 if options.lossless else quality)
        else:
            image.save(buffer, target, optimize=True)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeFailed(f"Unable to encode {target}: {exc}") from exc
    return buffer.getvalue()


def _clamp_quality(quality: int | None) -> int:
    if quality is None:
        return DEFAULT_QUALITY
    return max(1, min(100, quality))


def _to_jpeg(image: Image.Image, options: ImageOptions) -> Image.Image:
    if _has_alpha(image):
        return _flatten(image, options.background)
    if image.mode not in ("RGB", "L"):
        return image.convert("RGB")
    return image


def _to_png(image: Image.Image, options: ImageOptions) -> Image.Image:
    if options.palette_colors is None:
        return image
    source = image.convert("RGBA") if image.mode == "LA" else image
    if source.mode not in ("RGB", "RGBA", "L"):
        source = source.convert("RGB")
    if features.check_feature("libimagequant"):
        method = Image.Quantize.LIBIMAGEQUANT
    elif source.mode == "RGBA":
        method = Image.Quantize.FASTOCTREE
    else:
        method = Image.Quantize.MEDIANCUT
    return source.quantize(colors=options.palette_colors, method=method)


def _to_rgb_family(image: Image.Image) -> Image.Image:
    if image.mode in ("RGB", "RGBA"):
        return image
    return image.convert("RGBA" if _has_alpha(image) else "RGB")


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info)


def _flatten(image: Image.Image, background: str) -> Image.Image:
    rgba = image.convert("RGBA")
    base = Image.new("RGB", rgba.size, background)
    base.paste(rgba, mask=rgba.getchannel("A"))
    return base
