"""Image transcode policy: resize, convert or re-encode, then accept or revert."""

import io
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from mdassets.config.constants import (
    CATEGORY_TRANSCODE,
    DEFAULT_LOSSLESS_THRESHOLD,
    DEFAULT_MAX_HEIGHT,
    DEFAULT_MAX_WIDTH,
    DEFAULT_MIN_SAVINGS_RATIO,
    DEFAULT_TARGET_FORMAT,
    DEFAULT_TARGET_QUALITY,
    PALETTE_FORMATS,
    TARGET_FORMATS,
)
from mdassets.config.settings import CompressionSettings
from mdassets.core.references import TranscodeResult
from mdassets.exceptions import TranscodeError
from mdassets.utils.fs import partial_path, remove_quietly, replace_file
from mdassets.utils.logging import BoundLogger, get_logger


@dataclass(frozen=True)
class CompressionConfig:
    """Transcode policy for one run."""

    max_width: int = DEFAULT_MAX_WIDTH
    max_height: int = DEFAULT_MAX_HEIGHT
    convert_to_target_format: bool = True
    lossless_threshold_bytes: int = DEFAULT_LOSSLESS_THRESHOLD
    target_quality: int = DEFAULT_TARGET_QUALITY
    preserve_aspect_ratio: bool = True
    target_format: str = DEFAULT_TARGET_FORMAT
    allow_lossless: bool = True
    min_savings_ratio: float = DEFAULT_MIN_SAVINGS_RATIO
    reoptimize_same_format: bool = True

    @classmethod
    def from_settings(cls, settings: CompressionSettings) -> "CompressionConfig":
        return cls(
            max_width=settings.max_width,
            max_height=settings.max_height,
            convert_to_target_format=settings.convert_to_target_format,
            lossless_threshold_bytes=settings.lossless_threshold_bytes,
            target_quality=settings.target_quality,
            preserve_aspect_ratio=settings.preserve_aspect_ratio,
            target_format=settings.target_format,
            allow_lossless=settings.allow_lossless,
            min_savings_ratio=settings.min_savings_ratio,
            reoptimize_same_format=settings.reoptimize_same_format,
        )

    @property
    def target_pil_format(self) -> str:
        return TARGET_FORMATS[self.target_format][0]

    @property
    def target_extension(self) -> str:
        return TARGET_FORMATS[self.target_format][1]


@dataclass(frozen=True)
class EncodingChoice:
    """How an image is going to be written."""

    pil_format: str
    extension: str | None  # None keeps the source path
    lossless: bool
    quality: int


def choose_encoding(
    source_format: str, size: int, config: CompressionConfig
) -> EncodingChoice | None:
    """Pick the conversion encoding for a source image.

    Args:
        source_format: Pillow format name of the source (``PNG``, ``JPEG``...)
        size: Source file size in bytes
        config: Transcode policy

    Returns:
        The conversion to apply, or None when no format conversion is due
    """
    target = config.target_pil_format
    if not config.convert_to_target_format or source_format == target:
        return None

    if target == "PNG":
        lossless = True
    elif target == "WEBP":
        lossless = (
            config.allow_lossless
            and source_format in PALETTE_FORMATS
            and size < config.lossless_threshold_bytes
        )
    else:
        lossless = False

    return EncodingChoice(
        pil_format=target,
        extension=config.target_extension,
        lossless=lossless,
        quality=config.target_quality,
    )


def fit_within(
    size: tuple[int, int], max_width: int, max_height: int, preserve_aspect_ratio: bool = True
) -> tuple[int, int] | None:
    """New dimensions for an image exceeding the box, or None if it fits."""
    width, height = size
    if width <= max_width and height <= max_height:
        return None

    if not preserve_aspect_ratio:
        return min(width, max_width), min(height, max_height)

    scale = min(max_width / width, max_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


class ImageCompressor:
    """Apply the transcode policy to files on disk.

    The result of a resize, conversion or re-encode is only kept when it is
    smaller than the original by at least ``min_savings_ratio``; otherwise the
    original file is left untouched. Any failure also leaves the original in
    place and is reported through ``TranscodeResult.error``.
    """

    def __init__(
        self,
        config: CompressionConfig | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        """Initialize the compressor.

        Args:
            config: Transcode policy
            logger: Optional logger
        """
        self.config = config or CompressionConfig()
        self._log = (logger or get_logger(__name__)).bind(category=CATEGORY_TRANSCODE)

    def transcode(self, path: Path) -> TranscodeResult:
        """Transcode one local image. Never raises.

        Args:
            path: Local image file

        Returns:
            TranscodeResult whose ``final_path`` is the file now in effect
        """
        try:
            original_size = path.stat().st_size
        except OSError as e:
            return TranscodeResult(source_path=path, final_path=path, error=str(e))

        try:
            return self._transcode(path, original_size)
        except TranscodeError as e:
            self._log.warning("Transcode failed, keeping original", path=str(path), error=str(e))
            return TranscodeResult(
                source_path=path,
                final_path=path,
                original_size=original_size,
                final_size=original_size,
                error=str(e),
            )

    def _transcode(self, path: Path, original_size: int) -> TranscodeResult:
        """Run the policy on ``path``.

        Raises:
            TranscodeError: If the image cannot be decoded, encoded or written
        """
        try:
            return self._apply_policy(path, original_size)
        except UnidentifiedImageError as e:
            raise TranscodeError(path, "unrecognized image format", cause=e) from e
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise TranscodeError(path, str(e), cause=e) from e

    def _apply_policy(self, path: Path, original_size: int) -> TranscodeResult:
        kept = TranscodeResult(
            source_path=path,
            final_path=path,
            original_size=original_size,
            final_size=original_size,
        )

        with Image.open(path) as img:
            source_format = img.format or ""
            if getattr(img, "is_animated", False):
                self._log.debug("Animated image, keeping as is", path=str(path))
                return kept

            img.load()
            resized = self._resize_if_needed(img)
            choice = choose_encoding(source_format, original_size, self.config)

            if choice is not None:
                action = "converted"
                target = path.with_suffix(choice.extension or path.suffix)
                if target != path and target.exists():
                    self._log.warning(
                        "Conversion target already exists, keeping original",
                        path=str(path),
                        target=str(target),
                    )
                    return kept
            elif resized is not img or self.config.reoptimize_same_format:
                action = "resized" if resized is not img else "reencoded"
                choice = EncodingChoice(
                    pil_format=source_format,
                    extension=None,
                    lossless=source_format in PALETTE_FORMATS,
                    quality=self.config.target_quality,
                )
                target = path
            else:
                return kept

            data = self._encode(resized, choice)

        threshold = original_size * (1 - self.config.min_savings_ratio)
        if len(data) >= threshold:
            self._log.debug(
                "Result not smaller enough, keeping original",
                path=str(path),
                action=action,
                original_size=original_size,
                new_size=len(data),
            )
            return kept

        self._write(target, data)
        if target != path:
            remove_quietly(path)

        self._log.info(
            "Image transcoded",
            path=str(target),
            action=action,
            lossless=choice.lossless,
            original_size=original_size,
            new_size=len(data),
            savings=f"{(1 - len(data) / original_size) * 100:.1f}%",
        )
        return TranscodeResult(
            source_path=path,
            final_path=target,
            action=action,
            lossless=choice.lossless,
            original_size=original_size,
            final_size=len(data),
        )

    def _resize_if_needed(self, img: Image.Image) -> Image.Image:
        """Resize image if it exceeds the configured box."""
        new_size = fit_within(
            img.size,
            self.config.max_width,
            self.config.max_height,
            self.config.preserve_aspect_ratio,
        )
        if new_size is None:
            return img

        self._log.debug(
            "Resizing image",
            original=f"{img.size[0]}x{img.size[1]}",
            new=f"{new_size[0]}x{new_size[1]}",
        )
        return img.resize(new_size, Image.Resampling.LANCZOS)

    def _encode(self, img: Image.Image, choice: EncodingChoice) -> bytes:
        output = io.BytesIO()
        fmt = choice.pil_format

        if fmt == "WEBP":
            img = _to_rgb_or_rgba(img)
            if choice.lossless:
                img.save(output, format="WEBP", lossless=True, method=6)
            else:
                img.save(output, format="WEBP", quality=choice.quality, method=6)
        elif fmt == "JPEG":
            # JPEG doesn't support alpha
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            img.save(output, format="JPEG", quality=choice.quality, optimize=True)
        elif fmt in ("PNG", "GIF"):
            img.save(output, format=fmt, optimize=True)
        else:
            img.save(output, format=fmt)

        return output.getvalue()

    def _write(self, target: Path, data: bytes) -> None:
        part = partial_path(target)
        try:
            part.write_bytes(data)
            replace_file(part, target)
        except OSError:
            remove_quietly(part)
            raise


def _to_rgb_or_rgba(img: Image.Image) -> Image.Image:
    if img.mode in ("RGB", "RGBA"):
        return img
    has_alpha = img.mode in ("LA", "PA") or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")
