from __future__ import annotations

import argparse
import json
import mimetypes
import os
import sys
from typing import Sequence

from ..config import AI_BACKENDS, load_settings
from ..domain.models import RawImage
from ..errors import ReceiptPipelineError
from ..extraction.regex import REGEX_CONFIDENCE, RegexExtractor
from ..extraction.validator import ExtractionValidator
from ..logging import get_logger, set_level
from ..ocr.tesseract import TesseractTextService
from ..orchestrator.wiring import build_pipeline
from ..preprocess.image import ImagePreprocessor

LOG = get_logger("cli-main")


def _expand_abs(path: str) -> str:
    return os.path.abspath(os.path.expanduser(os.path.expandvars(path)))


def _read_raw_image(path: str, mime: str | None) -> RawImage:
    p = _expand_abs(path)
    with open(p, "rb") as f:
        data = f.read()
    if not mime:
        mime, _ = mimetypes.guess_type(p)
    return RawImage(data=data, mime_type=mime or "image/jpeg")


def _print_json(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _handle_process(ns: argparse.Namespace) -> int:
    settings = load_settings(os.getcwd())
    if ns.backend:
        settings = settings.with_backend(ns.backend)
    pipeline = build_pipeline(settings)
    draft = pipeline.process(_read_raw_image(ns.image, ns.mime))
    _print_json(draft.to_dict())
    return 0


def _handle_ocr(ns: argparse.Namespace) -> int:
    settings = load_settings(os.getcwd())
    ocr = TesseractTextService(lang=settings.tesseract_lang, tesseract_cmd=settings.tesseract_cmd)
    if not ocr.is_available():
        LOG.error("Tesseract is not installed or TESSERACT_CMD is wrong")
        return 1
    pre = ImagePreprocessor().preprocess_raw(_read_raw_image(ns.image, None))
    print(ocr.extract_text(pre))
    return 0


def _handle_parse_text(ns: argparse.Namespace) -> int:
    with open(_expand_abs(ns.text_file), "r", encoding="utf-8") as f:
        text = f.read()
    candidate = RegexExtractor().extract(text)
    draft = ExtractionValidator().validate(candidate, REGEX_CONFIDENCE, raw_text=text, source="tier3_regex")
    _print_json(draft.to_dict())
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.info(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="receipt-pipeline",
        description="Extract merchant, amount, date, category and line items from receipt images.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    process = subparsers.add_parser("process", help="Run the tiered extraction pipeline on one image.")
    process.add_argument("--image", required=True, help="Path to the receipt image")
    process.add_argument("--mime", help="MIME type override (default: guessed from the file name)")
    process.add_argument("--backend", choices=list(AI_BACKENDS), help="AI backend override (default: env/.env)")
    process.set_defaults(handler=_handle_process)

    ocr = subparsers.add_parser("ocr", help="Preprocess an image and print the OCR text.")
    ocr.add_argument("--image", required=True)
    ocr.set_defaults(handler=_handle_ocr)

    parse_text = subparsers.add_parser("parse-text", help="Run regex extraction + validation on a text file.")
    parse_text.add_argument("--text-file", required=True)
    parse_text.set_defaults(handler=_handle_parse_text)

    args = parser.parse_args(provided)
    if args.verbose:
        set_level("DEBUG")
    try:
        code = args.handler(args)
    except ReceiptPipelineError as exc:
        LOG.error(str(exc))
        code = 2
    except OSError as exc:
        LOG.error(f"Cannot read input: {exc}")
        code = 2
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
