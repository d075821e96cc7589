#!/usr/bin/env python3
"""
Mask hack for image models without native mask support.

Instead of sending a separate mask, the edit zone is drawn into the image
itself: the masked area is turned grayscale, optionally outlined with a red
border, and the model is told to redraw the grayscale part.
"""
import os
import sys
import logging
import argparse
from io import BytesIO

from pixel_buffer import decode_image, encode_image
from mask_utils import normalize_mask
from compositing import to_grayscale, detect_edges, composite, EDGE_COLOR
from utils import (
    MASK_HACK_MODEL,
    IMAGE_SIZES,
    IMAGE_QUALITIES,
    OUTPUT_DIR,
    configure_logging,
    create_openai_client,
    validate_edit_options,
    unique_filename,
    save_bytes,
    fetch_result_image,
)

logger = logging.getLogger(__name__)

HACK_PROMPT_TEMPLATE = (
    "The grayscale area of this image marks the region to replace. "
    "Redraw only that region as: {prompt}. "
    "Render the new content in full color, remove any red outline, "
    "and keep every colored part of the image exactly as it is."
)


def build_composite(image_source, mask_source, border=False, edge_color=EDGE_COLOR):
    """Grayscale the masked zone of an image, optionally outlining it"""
    original = decode_image(image_source)
    if original.channels == 1:
        original = decode_image(original.to_image().convert('RGB'))
    mask = normalize_mask(mask_source, original.width, original.height)
    edges = detect_edges(mask) if border else None
    return composite(original, to_grayscale(original), mask, edge=edges, edge_color=edge_color)


def _write_composite(buffer, output_path):
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(output_path, 'wb') as f:
        f.write(encode_image(buffer))
    logger.info(f"Composite saved to: {output_path}")
    return output_path


def create_visual_mask(image_source, mask_source, output_path):
    """Method 1: grayscale zone"""
    logger.info("Creating grayscale zone composite...")
    return _write_composite(build_composite(image_source, mask_source), output_path)


def create_marked_mask(image_source, mask_source, output_path, edge_color=EDGE_COLOR):
    """Method 2: grayscale zone with a colored border"""
    logger.info("Creating bordered composite...")
    buffer = build_composite(image_source, mask_source, border=True, edge_color=edge_color)
    return _write_composite(buffer, output_path)


def edit_with_composite(composite_source, prompt, client=None, output_dir=OUTPUT_DIR,
                        model=MASK_HACK_MODEL, size="auto", quality="high"):
    """Send a single composite image (no mask) and ask the model to redraw the grayscale zone"""
    validate_edit_options(size, quality)

    composite_png = encode_image(decode_image(composite_source))
    hack_prompt = HACK_PROMPT_TEMPLATE.format(prompt=prompt)
    client = client or create_openai_client()

    logger.info(f"Sending composite to {model}...")
    logger.info(f"Prompt: {hack_prompt}")
    try:
        image_file = BytesIO(composite_png)
        image_file.name = 'composite.png'

        params = {
            "model": model,
            "image": image_file,
            "prompt": hack_prompt,
            "n": 1,
            "quality": quality,
        }
        if size != "auto":
            params["size"] = size

        response = client.images.edit(**params)
        image_data = response.data[0]
        result_bytes = fetch_result_image(image_data)

        output_path = save_bytes(result_bytes, unique_filename('mask_hack_result'), output_dir)
        logger.info(f"Result saved to: {output_path}")
        return {
            "output_path": output_path,
            "revised_prompt": getattr(image_data, 'revised_prompt', None)
        }
    except Exception as e:
        logger.error(f"Error editing composite with {model}: {str(e)}")
        raise


def build_parser():
    parser = argparse.ArgumentParser(description="Build mask hack composites and optionally send them for editing")
    parser.add_argument("image", help="Path to the original image")
    parser.add_argument("mask", help="Path to the mask image (white = edit, black = keep)")
    parser.add_argument("--method", default="both", choices=("grayscale", "border", "both"),
                        help="Which composite(s) to create")
    parser.add_argument("--prompt", default=None, help="Edit prompt; without it only composites are created")
    parser.add_argument("--size", default="auto", choices=IMAGE_SIZES, help="Output size")
    parser.add_argument("--quality", default="high", choices=IMAGE_QUALITIES, help="Output quality")
    parser.add_argument("--model", default=MASK_HACK_MODEL, help="Image model to send the composite to")
    parser.add_argument("--output", default=OUTPUT_DIR, help="Output directory")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging('mask_hack.log')

    try:
        composites = []
        if args.method in ("grayscale", "both"):
            composites.append(create_visual_mask(
                args.image, args.mask, os.path.join(args.output, 'composite_grayscale.png')))
        if args.method in ("border", "both"):
            composites.append(create_marked_mask(
                args.image, args.mask, os.path.join(args.output, 'composite_marked.png')))

        print("\n✓ Composite images created:")
        for path in composites:
            print(f"  {path}")

        if not args.prompt:
            return 0

        result = edit_with_composite(composites[0], args.prompt, output_dir=args.output,
                                     model=args.model, size=args.size, quality=args.quality)
        print("\n✨ Mask hack edit complete:")
        print(f"Composite: {composites[0]}")
        print(f"Result: {result['output_path']}")
        return 0
    except Exception as e:
        print(f"\n❌ Failed: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
