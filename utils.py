import os
import logging
import uuid
from datetime import datetime
import base64
import requests
from openai import OpenAI
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Directory setup
OUTPUT_DIR = os.getenv('OUTPUT_DIR', './output')
TEST_IMAGES_DIR = os.getenv('TEST_IMAGES_DIR', './test-images')

# Model names
GPT_IMAGE_MODEL = os.getenv('GPT_IMAGE_MODEL', 'gpt-image-1')
MASK_HACK_MODEL = os.getenv('MASK_HACK_MODEL', 'gpt-image-1')

# Accepted edit options
IMAGE_SIZES = ('auto', '1024x1024', '1536x1024', '1024x1536')
IMAGE_QUALITIES = ('low', 'medium', 'high')

DOWNLOAD_TIMEOUT = 60


class ImageResponseError(Exception):
    """The images API answered without usable image data"""


def configure_logging(log_file='app.log', level=logging.INFO):
    """Configure root logging for an entry point"""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def create_openai_client(api_key=None):
    """Build the OpenAI client from an explicit key or OPENAI_API_KEY"""
    api_key = api_key or os.getenv('OPENAI_API_KEY')
    if not api_key:
        raise ValueError("OpenAI API key must be set in environment variables")
    return OpenAI(api_key=api_key)


def validate_edit_options(size, quality):
    if size not in IMAGE_SIZES:
        raise ValueError(f"Invalid size '{size}', expected one of: {', '.join(IMAGE_SIZES)}")
    if quality not in IMAGE_QUALITIES:
        raise ValueError(f"Invalid quality '{quality}', expected one of: {', '.join(IMAGE_QUALITIES)}")


def unique_filename(prefix, extension="png"):
    """Timestamped filename with a short random suffix"""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    unique_id = str(uuid.uuid4())[:8]
    return f"{prefix}_{timestamp}_{unique_id}.{extension}"


def save_bytes(data, filename, output_dir=OUTPUT_DIR):
    """Write bytes under output_dir and return the full path"""
    try:
        os.makedirs(output_dir, exist_ok=True)
        filepath = os.path.join(output_dir, filename)
        with open(filepath, 'wb') as f:
            f.write(data)
        logger.info(f"Saved {filepath}")
        return filepath
    except Exception as e:
        logger.error(f"Error saving {filename}: {str(e)}")
        raise


def fetch_result_image(image_data):
    """Extract image bytes from an images API result item (b64_json or url)"""
    b64_json = getattr(image_data, 'b64_json', None)
    if b64_json:
        logger.info("Decoding base64 result...")
        return base64.b64decode(b64_json)

    url = getattr(image_data, 'url', None)
    if url:
        logger.info("Downloading result from URL...")
        response = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
        return response.content

    raise ImageResponseError("Image API response contained neither b64_json nor url")
