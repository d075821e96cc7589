from flask import Flask, request, jsonify
import os
import base64
import logging
import binascii
from flask_cors import CORS

from pixel_buffer import PixelPipelineError, encode_image
from mask_utils import rect_mask, circle_mask
from mask_hack import build_composite
from inpaint import convert_mask_to_alpha, inpaint
from utils import OUTPUT_DIR, ImageResponseError, configure_logging, create_openai_client

app = Flask(__name__)
app.config.setdefault('OPENAI_API_KEY', os.getenv('OPENAI_API_KEY'))
app.config.setdefault('OPENAI_CLIENT', None)
app.config.setdefault('OUTPUT_DIR', OUTPUT_DIR)

# Configure CORS with specific settings
CORS(app,
     origins=[
         'http://localhost:3000',
         'http://127.0.0.1:3000',
     ],
     methods=['GET', 'POST', 'OPTIONS'],
     allow_headers=['Content-Type', 'Authorization'])

logger = logging.getLogger(__name__)


class RequestError(Exception):
    pass


def get_client():
    """OpenAI client built from app config on first use"""
    if app.config['OPENAI_CLIENT'] is None:
        app.config['OPENAI_CLIENT'] = create_openai_client(app.config['OPENAI_API_KEY'])
    return app.config['OPENAI_CLIENT']


def decode_base64_field(data, field):
    value = data.get(field)
    if not value:
        raise RequestError(f"No {field} provided")
    # Accept data URLs as well as bare base64
    if isinstance(value, str) and value.startswith('data:') and ',' in value:
        value = value.split(',', 1)[1]
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise RequestError(f"Field '{field}' is not valid base64")


def int_field(data, field):
    try:
        return int(data[field])
    except KeyError:
        raise RequestError(f"No {field} provided")
    except (TypeError, ValueError):
        raise RequestError(f"Field '{field}' must be an integer")


def png_base64(png_bytes):
    return base64.b64encode(png_bytes).decode('utf-8')


@app.errorhandler(RequestError)
def handle_bad_request(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(PixelPipelineError)
def handle_pipeline_error(e):
    logger.error(f"Pixel pipeline error: {str(e)}")
    return jsonify({"error": str(e), "type": type(e).__name__}), 400


@app.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok"})


@app.route('/api/masks/rect', methods=['POST'])
def create_rect_mask_endpoint():
    """Rectangular mask as a base64 PNG"""
    data = request.json or {}
    width, height = int_field(data, 'width'), int_field(data, 'height')
    rect = tuple(int_field(data, key) for key in ('x', 'y', 'w', 'h'))
    mask = rect_mask(width, height, rect)
    return jsonify({"mask_base64": png_base64(encode_image(mask)), "width": width, "height": height})


@app.route('/api/masks/circle', methods=['POST'])
def create_circle_mask_endpoint():
    """Circular mask as a base64 PNG"""
    data = request.json or {}
    width, height = int_field(data, 'width'), int_field(data, 'height')
    try:
        circle = (float(data['cx']), float(data['cy']), float(data['radius']))
    except KeyError as e:
        raise RequestError(f"No {e.args[0]} provided")
    except (TypeError, ValueError):
        raise RequestError("Fields 'cx', 'cy' and 'radius' must be numbers")
    mask = circle_mask(width, height, circle)
    return jsonify({"mask_base64": png_base64(encode_image(mask)), "width": width, "height": height})


@app.route('/api/alpha-mask', methods=['POST'])
def alpha_mask_endpoint():
    """Convert a black/white mask into the alpha mask expected by GPT Image-1"""
    data = request.json or {}
    mask_bytes = decode_base64_field(data, 'mask')
    width, height = int_field(data, 'width'), int_field(data, 'height')
    return jsonify({"mask_base64": png_base64(convert_mask_to_alpha(mask_bytes, width, height))})


@app.route('/api/composite', methods=['POST'])
def composite_endpoint():
    """Mask hack composite: grayscale zone, optionally with a red border"""
    data = request.json or {}
    image_bytes = decode_base64_field(data, 'image')
    mask_bytes = decode_base64_field(data, 'mask')
    border = data.get('border', False)
    if not isinstance(border, bool):
        raise RequestError("Field 'border' must be true or false")

    buffer = build_composite(image_bytes, mask_bytes, border=border)
    logger.info(f"Built {'bordered' if border else 'grayscale'} composite {buffer.width}x{buffer.height}")
    return jsonify({
        "composite_base64": png_base64(encode_image(buffer)),
        "width": buffer.width,
        "height": buffer.height
    })


@app.route('/api/inpaint', methods=['POST'])
def inpaint_endpoint():
    """Native inpainting with GPT Image-1"""
    data = request.json or {}
    prompt = data.get('prompt', '')
    if not prompt:
        return jsonify({"error": "No prompt provided"}), 400

    image_bytes = decode_base64_field(data, 'image')
    mask_bytes = decode_base64_field(data, 'mask')

    try:
        client = get_client()
    except ValueError as e:
        logger.error(f"OpenAI client unavailable: {str(e)}")
        return jsonify({"error": str(e)}), 500

    try:
        result = inpaint(
            image_bytes,
            mask_bytes,
            prompt,
            client=client,
            output_dir=app.config['OUTPUT_DIR'],
            size=data.get('size', 'auto'),
            quality=data.get('quality', 'high'),
        )
    except ImageResponseError as e:
        logger.error(f"Image API returned no image: {str(e)}")
        return jsonify({"error": str(e)}), 500
    except (PixelPipelineError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Inpainting error: {str(e)}")
        return jsonify({"error": str(e)}), 500

    with open(result["output_path"], 'rb') as f:
        result_bytes = f.read()

    return jsonify({
        "image_base64": png_base64(result_bytes),
        "output_path": result["output_path"],
        "revised_prompt": result["revised_prompt"],
        "width": result["width"],
        "height": result["height"]
    })


if __name__ == '__main__':
    configure_logging('app.log')

    port = int(os.getenv('PORT', 5000))
    host = '0.0.0.0' if os.getenv('PORT') else '127.0.0.1'
    debug = not bool(os.getenv('PORT'))

    logger.info(f"Starting Flask application on {host}:{port} (debug={debug})")
    app.run(host=host, port=port, debug=debug)
