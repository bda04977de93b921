"""Compression service configuration.

Defaults live on the dataclass. An INI file can override any of them:

    [Compression]
    Max_File_Size_Bytes = 52428800
    Large_File_Bytes = 5242880
    Default_Quality = 80

    [Predictor]
    Model_Path = models/quality.joblib

    [Remote]
    Url = http://localhost:5000/api/compress
    Timeout = 10

    [Analysis]
    Workers = 4
    Measure_SSIM = True
"""

from configparser import ConfigParser, Error as ConfigParserError
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import ValidationFailure

MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024
LARGE_FILE_BYTES = 5 * 1024 * 1024

# Options clamp quality into this range before the config bounds apply
QUALITY_FLOOR = 10
QUALITY_CEILING = 100


@dataclass
class CompressorConfig:
    """Settings shared by the compression service and its collaborators.

    Attributes:
        max_file_size_bytes: Upload ceiling accepted by validate()
        large_file_bytes: Size above which analyze() warns about large files
        default_quality: Quality used when options don't specify one
        min_quality: Lower clamp for quality values
        max_quality: Upper clamp for quality values
        remote_url: Hybrid compressor endpoint (None = no remote compressor)
        remote_timeout: Seconds before the remote call is abandoned
        model_path: Persisted regression model (None = train in-process)
        analysis_workers: Thread pool size for parallel metrics
        measure_ssim: Compute a measured SSIM when scikit-image is installed
    """
    max_file_size_bytes: int = MAX_FILE_SIZE_BYTES
    large_file_bytes: int = LARGE_FILE_BYTES
    default_quality: int = 80
    min_quality: int = 10
    max_quality: int = 100
    remote_url: Optional[str] = None
    remote_timeout: float = 10.0
    model_path: Optional[Path] = None
    analysis_workers: int = 4
    measure_ssim: bool = True

    def __post_init__(self):
        """Validate settings."""
        if self.max_file_size_bytes <= 0:
            raise ValidationFailure(
                f"max_file_size_bytes must be positive, got {self.max_file_size_bytes}"
            )
        if not QUALITY_FLOOR <= self.min_quality <= self.max_quality <= QUALITY_CEILING:
            raise ValidationFailure(
                f"quality bounds must satisfy {QUALITY_FLOOR} <= min <= max <= {QUALITY_CEILING}, "
                f"got {self.min_quality}..{self.max_quality}"
            )
        if self.remote_timeout <= 0:
            raise ValidationFailure(f"remote_timeout must be positive, got {self.remote_timeout}")
        if self.analysis_workers < 1:
            raise ValidationFailure(f"analysis_workers must be >= 1, got {self.analysis_workers}")
        if self.model_path is not None and not isinstance(self.model_path, Path):
            self.model_path = Path(self.model_path)

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> 'CompressorConfig':
        """Load configuration from an INI file.

        A missing file yields the defaults. Missing keys keep their defaults.

        Args:
            config_path: Path to the INI file

        Returns:
            Loaded CompressorConfig
        """
        config_path = Path(config_path)
        config = cls()

        if not config_path.exists():
            return config

        parser = ConfigParser()
        try:
            parser.read(config_path, encoding='utf-8')
        except ConfigParserError as ex:
            raise ValidationFailure(f"Unreadable config file {config_path}: {ex}") from ex

        try:
            if parser.has_section('Compression'):
                section = parser['Compression']
                config.max_file_size_bytes = section.getint(
                    'Max_File_Size_Bytes', config.max_file_size_bytes
                )
                config.large_file_bytes = section.getint('Large_File_Bytes', config.large_file_bytes)
                config.default_quality = section.getint('Default_Quality', config.default_quality)
                config.min_quality = section.getint('Min_Quality', config.min_quality)
                config.max_quality = section.getint('Max_Quality', config.max_quality)

            if parser.has_section('Predictor'):
                model_path = parser['Predictor'].get('Model_Path', '').strip()
                if model_path:
                    config.model_path = Path(model_path)

            if parser.has_section('Remote'):
                section = parser['Remote']
                url = section.get('Url', '').strip()
                config.remote_url = url or None
                config.remote_timeout = section.getfloat('Timeout', config.remote_timeout)

            if parser.has_section('Analysis'):
                section = parser['Analysis']
                config.analysis_workers = section.getint('Workers', config.analysis_workers)
                config.measure_ssim = section.getboolean('Measure_SSIM', config.measure_ssim)
        except ValueError as ex:
            raise ValidationFailure(f"Invalid value in {config_path}: {ex}") from ex

        # Re-run validation on the loaded values
        config.__post_init__()
        return config

    def clamp_quality(self, quality: int) -> int:
        """Clamp quality into the configured range."""
        return max(self.min_quality, min(self.max_quality, int(quality)))
