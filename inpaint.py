#!/usr/bin/env python3
"""
GPT Image-1 native inpainting.

The mask marks the area to edit in white and the area to keep in black.
gpt-image-1 expects the opposite encoding in an alpha channel
(transparent = edit, opaque = keep), so the mask is converted before upload.
"""
import os
import sys
import logging
import argparse
from io import BytesIO

from pixel_buffer import decode_image, encode_image
from mask_utils import normalize_mask, to_alpha_mask, rect_mask, circle_mask
from utils import (
    GPT_IMAGE_MODEL,
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


def convert_mask_to_alpha(mask_source, width, height):
    """Convert a black/white mask into a PNG whose alpha marks the edit area"""
    logger.info("Converting mask to alpha channel...")
    mask = normalize_mask(mask_source, width, height)
    return encode_image(to_alpha_mask(mask))


def prepare_image(image_source):
    """Re-encode the image as PNG with an alpha channel"""
    logger.info("Preparing image...")
    image = decode_image(image_source)
    if image.channels != 4:
        image = decode_image(image.to_image().convert('RGBA'))
    return {
        "buffer": encode_image(image),
        "width": image.width,
        "height": image.height
    }


def inpaint(image_source, mask_source, prompt, client=None, output_dir=OUTPUT_DIR,
            size="auto", quality="high", model=GPT_IMAGE_MODEL):
    """Inpaint the masked area of an image with GPT Image-1"""
    validate_edit_options(size, quality)

    logger.info("=== GPT-Image 1 Inpainting ===")
    logger.info(f"Prompt: {prompt}")

    prepared = prepare_image(image_source)
    width, height = prepared["width"], prepared["height"]
    mask_png = convert_mask_to_alpha(mask_source, width, height)

    # Keep the prepared inputs around for debugging
    save_bytes(prepared["buffer"], 'prepared_image.png', output_dir)
    save_bytes(mask_png, 'prepared_mask.png', output_dir)

    client = client or create_openai_client()

    logger.info(f"Sending to {model}...")
    try:
        image_file = BytesIO(prepared["buffer"])
        image_file.name = 'image.png'
        mask_file = BytesIO(mask_png)
        mask_file.name = 'mask.png'

        params = {
            "model": model,
            "image": image_file,
            "mask": mask_file,
            "prompt": prompt,
            "n": 1,
            "quality": quality,
        }
        if size != "auto":
            params["size"] = size

        response = client.images.edit(**params)
        image_data = response.data[0]
        result_bytes = fetch_result_image(image_data)

        output_path = save_bytes(result_bytes, unique_filename('inpaint_result'), output_dir)
        logger.info(f"Result saved to: {output_path}")

        return {
            "output_path": output_path,
            "revised_prompt": getattr(image_data, 'revised_prompt', None),
            "width": width,
            "height": height
        }
    except Exception as e:
        logger.error(f"Error inpainting with {model}: {str(e)}")
        raise


def batch_inpaint(image_source, mask_source, prompts, **options):
    """Run one inpainting call per prompt; a failed prompt does not stop the batch"""
    logger.info(f"=== Batch Inpainting ({len(prompts)} variations) ===")

    results = []
    for i, prompt in enumerate(prompts):
        logger.info(f"--- Variation {i + 1}/{len(prompts)} ---")
        try:
            result = inpaint(image_source, mask_source, prompt, **options)
            results.append({"prompt": prompt, **result, "success": True})
        except Exception as e:
            results.append({"prompt": prompt, "error": str(e), "success": False})

    return results


def create_rect_mask(width, height, rect, output_path):
    """Save a rectangular mask, rect = (x, y, w, h)"""
    logger.info("Creating rectangular mask...")
    with open(output_path, 'wb') as f:
        f.write(encode_image(rect_mask(width, height, rect)))
    logger.info(f"Mask saved to: {output_path}")
    return output_path


def create_circle_mask(width, height, circle, output_path):
    """Save a circular mask, circle = (cx, cy, radius)"""
    logger.info("Creating circular mask...")
    with open(output_path, 'wb') as f:
        f.write(encode_image(circle_mask(width, height, circle)))
    logger.info(f"Mask saved to: {output_path}")
    return output_path


def build_parser():
    parser = argparse.ArgumentParser(
        description="Inpaint an image with GPT Image-1 using a black/white mask",
        epilog="Mask format: white (255) = area to edit, black (0) = area to keep",
    )
    parser.add_argument("image", help="Path to the original image (PNG, JPG, etc.)")
    parser.add_argument("mask", help="Path to the mask image (white = edit, black = keep)")
    parser.add_argument("prompt", help="What to generate in the masked area")
    parser.add_argument("--size", default="auto", choices=IMAGE_SIZES, help="Output size")
    parser.add_argument("--quality", default="high", choices=IMAGE_QUALITIES, help="Output quality")
    parser.add_argument("--output", default=OUTPUT_DIR, help="Output directory")
    parser.add_argument("--api_key", default=None, help="OpenAI API key (defaults to OPENAI_API_KEY)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging('inpaint.log')

    for path in (args.image, args.mask):
        if not os.path.exists(path):
            print(f"❌ Error: File not found at {path}")
            return 1

    try:
        client = create_openai_client(args.api_key)
        result = inpaint(args.image, args.mask, args.prompt, client=client,
                         output_dir=args.output, size=args.size, quality=args.quality)

        print("\n✨ Inpainting complete:")
        print(f"Input image: {args.image}")
        print(f"Mask: {args.mask}")
        print(f"Result: {result['output_path']}")
        if result["revised_prompt"]:
            print(f"Revised prompt: {result['revised_prompt']}")
        return 0
    except Exception as e:
        print(f"\n❌ Failed: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
