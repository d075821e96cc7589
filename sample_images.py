#!/usr/bin/env python3
"""
Synthetic scenes and masks for trying out both editing workflows.

    python sample_images.py                   # inpaint the building scene
    python sample_images.py --batch           # several prompts on the same mask
    python sample_images.py --masks           # rectangle and circle masks only
    python sample_images.py --create-only     # building scene and mask only
    python sample_images.py --composites-only # mask hack composites, no API call
    python sample_images.py --mask-hack       # composites + mask hack edit
"""
import os
import sys
import argparse
import numpy as np

from pixel_buffer import PixelBuffer, encode_image
from mask_utils import rect_mask
from inpaint import inpaint, batch_inpaint, create_rect_mask, create_circle_mask
from mask_hack import create_visual_mask, create_marked_mask, edit_with_composite
from utils import OUTPUT_DIR, TEST_IMAGES_DIR, configure_logging, create_openai_client

SCENE_SIZE = 1024

BATCH_PROMPTS = [
    'a futuristic glass tower with LED lights',
    'a historic brick building with Victorian architecture',
    'a modern eco-friendly building covered in vertical gardens',
]


def _coordinates(width, height):
    ys, xs = np.mgrid[:height, :width]
    return xs, ys


def create_building_scene(width=SCENE_SIZE, height=SCENE_SIZE):
    """Sky, a windowed building on the right, grass and a pale background"""
    xs, ys = _coordinates(width, height)
    pixels = np.zeros((height, width, 3), dtype=np.uint8)

    # Background
    pixels[...] = (200, 210, 220)

    building = (xs > 500) & (xs < 800) & (ys > 200) & (ys < 850)
    pixels[building] = (180, 170, 160)
    windows = building & np.isin((xs - 500) % 60, range(11, 45)) & np.isin((ys - 200) % 100, range(16, 70))
    pixels[windows] = (100, 140, 180)

    pixels[ys >= 850] = (80, 140, 80)

    # Sky gradient wins over everything above y=400
    sky = ys < 400
    sky_factor = ys / 400.0
    pixels[..., 0] = np.where(sky, np.floor(135 + (1 - sky_factor) * 50), pixels[..., 0])
    pixels[..., 1] = np.where(sky, np.floor(206 + (1 - sky_factor) * 30), pixels[..., 1])
    pixels[..., 2] = np.where(sky, 235, pixels[..., 2])

    return PixelBuffer(pixels)


def create_building_mask(width=SCENE_SIZE, height=SCENE_SIZE):
    """Covers the building with a small margin: 480 < x < 820, 180 < y < 870"""
    return rect_mask(width, height, (481, 181, 339, 689))


def create_city_scene(width=SCENE_SIZE, height=SCENE_SIZE):
    """Colour gradient with a gray building, sky and ground"""
    xs, ys = _coordinates(width, height)
    pixels = np.zeros((height, width, 3), dtype=np.uint8)

    pixels[..., 0] = np.floor(xs / width * 255)
    pixels[..., 1] = np.floor(ys / height * 255)
    pixels[..., 2] = 150

    building = (xs > 600) & (xs < 800) & (ys > 300) & (ys < 800)
    pixels[building] = (100, 100, 100)
    windows = building & np.isin((xs - 600) % 50, range(11, 40)) & np.isin((ys - 300) % 80, range(11, 60))
    pixels[windows] = (200, 220, 255)

    pixels[ys > 800] = (80, 120, 80)

    sky = ys < 200
    sky_factor = 1 - ys / 200.0
    pixels[..., 0] = np.where(sky, 135 + np.floor(sky_factor * 50), pixels[..., 0])
    pixels[..., 1] = np.where(sky, 206 + np.floor(sky_factor * 30), pixels[..., 1])
    pixels[..., 2] = np.where(sky, 235, pixels[..., 2])

    return PixelBuffer(pixels)


def create_city_mask(width=SCENE_SIZE, height=SCENE_SIZE):
    """Covers the city building: 580 < x < 820, 280 < y < 820"""
    return rect_mask(width, height, (581, 281, 239, 539))


def save_buffer(buffer, filename, directory=TEST_IMAGES_DIR):
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, filename)
    with open(path, 'wb') as f:
        f.write(encode_image(buffer))
    print(f"✓ Created {path}")
    return path


def create_building_files(directory=TEST_IMAGES_DIR):
    image_path = save_buffer(create_building_scene(), 'test_building.png', directory)
    mask_path = save_buffer(create_building_mask(), 'building_mask.png', directory)
    return image_path, mask_path


def create_city_files(directory=TEST_IMAGES_DIR):
    image_path = save_buffer(create_city_scene(), 'test_scene.png', directory)
    mask_path = save_buffer(create_city_mask(), 'test_mask.png', directory)
    return image_path, mask_path


def create_composites(output_dir=OUTPUT_DIR, directory=TEST_IMAGES_DIR):
    image_path, mask_path = create_city_files(directory)
    grayscale_path = create_visual_mask(image_path, mask_path, os.path.join(output_dir, 'composite_grayscale.png'))
    marked_path = create_marked_mask(image_path, mask_path, os.path.join(output_dir, 'composite_marked.png'))
    print(f"1. Grayscale method: {grayscale_path}")
    print(f"2. Red border method: {marked_path}")
    return grayscale_path, marked_path


def _client_or_none():
    if not os.getenv('OPENAI_API_KEY'):
        print("\n⚠️  OPENAI_API_KEY not set. Test images were created; set it in a .env file to call the API.")
        return None
    return create_openai_client()


def run_simple_test(output_dir=OUTPUT_DIR, directory=TEST_IMAGES_DIR):
    image_path, mask_path = create_building_files(directory)
    client = _client_or_none()
    if client is None:
        return None

    result = inpaint(image_path, mask_path, 'a modern glass skyscraper with reflective blue windows',
                     client=client, output_dir=output_dir)
    print(f"\n✨ Result: {result['output_path']}")
    return result


def run_batch_test(output_dir=OUTPUT_DIR, directory=TEST_IMAGES_DIR):
    image_path, mask_path = create_building_files(directory)
    client = _client_or_none()
    if client is None:
        return None

    results = batch_inpaint(image_path, mask_path, BATCH_PROMPTS, client=client, output_dir=output_dir)
    for i, r in enumerate(results):
        print(f"\n{i + 1}. {r['prompt']}")
        if r["success"]:
            print(f"   Result: {r['output_path']}")
        else:
            print(f"   Error: {r['error']}")
    return results


def run_mask_test(directory=TEST_IMAGES_DIR):
    os.makedirs(directory, exist_ok=True)
    create_rect_mask(SCENE_SIZE, SCENE_SIZE, (200, 200, 400, 300), os.path.join(directory, 'rect_mask.png'))
    create_circle_mask(SCENE_SIZE, SCENE_SIZE, (512, 512, 200), os.path.join(directory, 'circle_mask.png'))
    print(f"\nMasks created in {directory}")


def run_mask_hack_experiment(output_dir=OUTPUT_DIR, directory=TEST_IMAGES_DIR):
    grayscale_path, _ = create_composites(output_dir, directory)
    client = _client_or_none()
    if client is None:
        return None

    result = edit_with_composite(grayscale_path, 'a futuristic glass skyscraper with blue LED lights',
                                 client=client, output_dir=output_dir)
    print(f"\nComposite: {grayscale_path}")
    print(f"Result: {result['output_path']}")
    print("Compare the images to see whether the hack worked.")
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create sample scenes and run the editing experiments")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--batch", action="store_true", help="Inpaint the building scene with several prompts")
    mode.add_argument("--masks", action="store_true", help="Only create rectangle and circle masks")
    mode.add_argument("--create-only", action="store_true", help="Only create the building scene and mask")
    mode.add_argument("--composites-only", action="store_true", help="Only create mask hack composites")
    mode.add_argument("--mask-hack", action="store_true", help="Create composites and send one for editing")
    parser.add_argument("--output", default=OUTPUT_DIR, help="Output directory")
    parser.add_argument("--images", default=TEST_IMAGES_DIR, help="Directory for the generated test images")
    args = parser.parse_args(argv)
    configure_logging('sample_images.log')

    try:
        if args.batch:
            run_batch_test(args.output, args.images)
        elif args.masks:
            run_mask_test(args.images)
        elif args.create_only:
            create_building_files(args.images)
        elif args.composites_only:
            create_composites(args.output, args.images)
        elif args.mask_hack:
            run_mask_hack_experiment(args.output, args.images)
        else:
            run_simple_test(args.output, args.images)
        return 0
    except Exception as e:
        print(f"\n❌ Process failed: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
