from flask import Flask, request, jsonify
from flask_cors import CORS
import os
import tempfile
import base64
import logging

from werkzeug.utils import secure_filename

import lsb_stego.main_pipeline as mp
from lsb_stego.config import Config, setup_logging
from lsb_stego.errors import StegoError

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = Config.MAX_CONTENT_LENGTH
CORS(app)


def _flag(name: str, default: str = 'false') -> bool:
    return request.form.get(name, default).lower() == 'true'


def _optional_flag(name: str):
    value = request.form.get(name)
    if value is None or value == '':
        return None
    return value.lower() == 'true'


def _error(e: Exception):
    status = 400 if isinstance(e, StegoError) else 500
    if status == 500:
        logger.exception("Unexpected error")
    return jsonify({
        'success': False,
        'error': str(e)
    }), status


@app.route('/')
def hello():
    return 'HELLO'


@app.route('/encrypt', methods=['POST'])
def encrypt():
    try:
        if 'mp3File' not in request.files or 'embedFile' not in request.files:
            return jsonify({
                'success': False,
                'error': 'Missing required files (mp3File and embedFile)'
            }), 400

        mp3_file = request.files['mp3File']
        embed_file = request.files['embedFile']

        if mp3_file.filename == '' or embed_file.filename == '':
            return jsonify({
                'success': False,
                'error': 'No file selected'
            }), 400

        use_encryption = _flag('useEncryption')
        random_embedding = _flag('randomEmbedding')
        store_tag = _flag('storeTagMetadata')
        mode = request.form.get('mode', Config.DEFAULT_MODE)
        key = request.form.get('key', '')
        try:
            lsb_bits = int(request.form.get('lsbBits', '1'))
            bitrate = int(request.form.get('bitrate', str(Config.BITRATE)))
        except ValueError:
            return jsonify({'success': False, 'error': 'lsbBits and bitrate must be integers'}), 400

        mp3_filename = secure_filename(mp3_file.filename) or 'cover.mp3'
        embed_filename = secure_filename(embed_file.filename) or 'secret.bin'
        base, ext = os.path.splitext(mp3_filename)
        output_filename = f"{base}_embedded{ext or '.mp3'}"

        with tempfile.TemporaryDirectory() as workdir:
            cover_path = os.path.join(workdir, mp3_filename)
            secret_path = os.path.join(workdir, embed_filename)
            output_path = os.path.join(workdir, output_filename)
            mp3_file.save(cover_path)
            embed_file.save(secret_path)

            result = mp.embed(mp.EmbedConfig(
                cover_audio=cover_path,
                secret_file=secret_path,
                stego_key=key,
                output_path=output_path,
                n_lsb=lsb_bits,
                use_random_seed=random_embedding,
                use_encryption=use_encryption,
                mode=mode,
                bitrate=bitrate,
                store_tag_metadata=store_tag,
            ))
            with open(output_path, 'rb') as f:
                encoded_audio = base64.b64encode(f.read()).decode('utf-8')

        logger.info("Processed steganography: cover=%s secret=%s mode=%s lsb=%d random=%s encryption=%s psnr=%.2f",
                    mp3_filename, embed_filename, result.mode, lsb_bits, random_embedding, use_encryption, result.psnr)

        configuration = {
            'originalFileName': mp3_filename,
            'embeddedFileName': embed_filename,
            'useEncryption': use_encryption,
            'randomEmbedding': random_embedding,
            'lsbBits': lsb_bits,
            'mode': result.mode,
            'psnr': round(result.psnr, 2),
            'quality': result.quality,
            'payloadSize': result.payload_size,
            'capacity': result.capacity_bytes,
        }

        return jsonify({
            'success': True,
            'message': 'Steganography processing completed successfully',
            'configuration': configuration,
            'outputFile': output_filename,
            'audioData': encoded_audio,
            'mimeType': 'audio/wav' if ext.lower() == '.wav' else 'audio/mpeg'
        })

    except Exception as e:
        return _error(e)


@app.route('/decrypt', methods=['POST'])
def decrypt():
    try:
        if 'mp3File' not in request.files:
            return jsonify({
                'success': False,
                'error': 'Missing required MP3 file'
            }), 400

        mp3_file = request.files['mp3File']
        if mp3_file.filename == '':
            return jsonify({
                'success': False,
                'error': 'No file selected'
            }), 400

        key = request.form.get('key', '')
        use_encryption = _optional_flag('useEncryption')
        mode = request.form.get('mode', 'auto')
        mp3_filename = secure_filename(mp3_file.filename) or 'stego.mp3'

        with tempfile.TemporaryDirectory() as workdir:
            stego_path = os.path.join(workdir, mp3_filename)
            out_dir = os.path.join(workdir, 'out')
            os.mkdir(out_dir)
            mp3_file.save(stego_path)

            result = mp.extract(mp.ExtractConfig(
                stego_audio=stego_path,
                stego_key=key,
                output_path=out_dir,
                use_decryption=use_encryption,
                mode=mode,
            ))
            with open(result.output_path, 'rb') as f:
                extracted = f.read()

        extracted_filename = os.path.basename(result.output_path)
        meta = result.metadata

        configuration = {
            'fileExtension': mp.extract_file_extension(extracted_filename),
            'fileName': extracted_filename,
            'secretFileSize': len(extracted) / 1000,  # in KB
            'useEncryption': meta.used_encryption if meta else bool(use_encryption),
            'randomEmbedPoint': result.params.use_random,
            'lsbBits': result.params.lsb_depth,
            'method': result.method,
        }

        return jsonify({
            'success': True,
            'message': 'Decryption completed successfully',
            'configuration': configuration,
            'extractedFileName': extracted_filename,
            'extractedFileData': base64.b64encode(extracted).decode('utf-8'),
            'mimeType': 'application/octet-stream'
        })

    except Exception as e:
        return _error(e)


if __name__ == '__main__':
    setup_logging()
    app.run(debug=Config.DEBUG, port=Config.PORT)
