#!/usr/bin/env python3
"""Build signing package outputs from local templates.

Usage:
    python scripts/build-signing-package.py record.json \
        --commitment commitment.pdf --application application.pdf
    python scripts/build-signing-package.py record.json --singles --cover
    python scripts/build-signing-package.py record.json --lender MCAP --package-type heloc ...
"""

import argparse
import json
import os
import sys

from signing_package.assembly.sources import LocalTemplateSource
from signing_package.builder import PackageBuilder
from signing_package.common.config import Settings
from signing_package.common.exceptions import PackageBuildError
from signing_package.common.models import NamedDocument, UploadSlot

UPLOAD_ARGS = {
    "commitment": UploadSlot.COMMITMENT,
    "application": UploadSlot.APPLICATION,
    "mpp": UploadSlot.INSURANCE,
    "apa": UploadSlot.TD_APA,
}


def read_uploads(args):
    uploads = {}
    for arg_name, slot in UPLOAD_ARGS.items():
        path = getattr(args, arg_name)
        if path:
            with open(path, "rb") as f:
                uploads[slot] = f.read()
    return uploads


def write_output(document: NamedDocument, output_dir: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, document.name)
    with open(path, "wb") as f:
        f.write(document.content)
    print(f"  Wrote {path} ({len(document.content)} bytes)")
    return path


def run(args):
    with open(args.record, encoding="utf-8") as f:
        record = json.load(f)

    settings = Settings(template_dir=args.templates, config_dir=args.config)
    builder = PackageBuilder(LocalTemplateSource(settings.template_dir, settings.config_dir), settings)

    lender_code = builder.resolve_lender(record, args.lender)
    print(f"\nLender: {lender_code}, package type: {args.package_type}")

    if not (args.singles or args.cover) or args.package:
        document = builder.build_signing_package(
            record,
            read_uploads(args),
            lender=args.lender,
            package_type=args.package_type,
        )
        write_output(document, args.output)

    if args.singles:
        write_output(builder.build_editable_singles(record, lender=args.lender), args.output)

    if args.cover:
        write_output(builder.build_info_cover(record), args.output)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Build signing package outputs from local templates")
    parser.add_argument("record", help="CRM record JSON file")
    parser.add_argument("--templates", default=os.environ.get("TEMPLATE_DIR", "data/templates"))
    parser.add_argument("--config", default=os.environ.get("CONFIG_DIR", "config"))
    parser.add_argument("--output", default="out")
    parser.add_argument("--lender", default=None)
    parser.add_argument("--package-type", default="standard", choices=["standard", "heloc"])
    parser.add_argument("--package", action="store_true", help="Build the signing package (default)")
    parser.add_argument("--singles", action="store_true", help="Build the editable singles zip")
    parser.add_argument("--cover", action="store_true", help="Build the info cover page")
    parser.add_argument("--commitment", help="Commitment PDF upload")
    parser.add_argument("--application", help="Mortgage application PDF upload")
    parser.add_argument("--mpp", help="Mortgage protection plan PDF upload")
    parser.add_argument("--apa", help="TD APA PDF upload")
    args = parser.parse_args()

    try:
        run(args)
    except PackageBuildError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)
