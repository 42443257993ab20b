"""Typer parameter declarations shared by the restore and batch commands."""

from pathlib import Path
from typing import Annotated

import typer

from comicrestore.cli.callbacks import validate_output_dir, validate_scale

OutputOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Output directory for restored pages and PDFs.",
        callback=validate_output_dir,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
]

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to a config.json file.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
]

WidthOption = Annotated[
    float | None,
    typer.Option("--width", help="Trim width in inches (default 6.625).", min=0.1),
]

HeightOption = Annotated[
    float | None,
    typer.Option("--height", help="Trim height in inches (default 10.25).", min=0.1),
]

BleedOption = Annotated[
    float | None,
    typer.Option("--bleed", help="Bleed margin in inches (default 0.125).", min=0.0),
]

DpiOption = Annotated[
    int | None,
    typer.Option("--dpi", help="Print resolution (default 300).", min=1),
]

ScaleOption = Annotated[
    int | None,
    typer.Option(
        "--scale",
        "-s",
        help="Upscale factor: 1, 2 or 4.",
        callback=validate_scale,
    ),
]

MatteOption = Annotated[
    float | None,
    typer.Option(
        "--matte-compensation",
        help="Midtone lift for matte paper, 0-10.",
        min=0.0,
        max=10.0,
    ),
]

FaceRestoreOption = Annotated[
    bool | None,
    typer.Option(
        "--face-restore/--no-face-restore",
        help="Ask the model to enhance faces (can alter stylized art).",
    ),
]

OcrOption = Annotated[
    bool | None,
    typer.Option("--ocr/--no-ocr", help="Extract page text into <name>_text.txt."),
]

VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose output."),
]
