"""
Command line front-end.

Usage:
  mp3-stego embed -c cover.mp3 -m secret.pdf -k key -l 2 --random -o stego.mp3
  mp3-stego extract -s stego.mp3 -k key -o out_dir/
  mp3-stego psnr original.wav stego.wav
  mp3-stego inspect song.mp3
"""
import argparse
import logging
import sys

import lsb_stego.audio as au
import lsb_stego.bitstream as bs
import lsb_stego.main_pipeline as mp
from lsb_stego.config import Config, setup_logging
from lsb_stego.errors import StegoError
from lsb_stego.positions import calculate_capacity
from lsb_stego.psnr import calculate_psnr, quality_description

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    p = argparse.ArgumentParser(prog="mp3-stego", description="Audio steganography using the LSB method.")
    p.add_argument('-v', '--verbose', action='store_true', help='debug logging (parameter search details)')
    sub = p.add_subparsers(dest='cmd', required=True)

    pe = sub.add_parser('embed', help='Embed a secret file into an MP3 file')
    pe.add_argument('-c', '--cover', required=True, help='cover audio file (MP3 or WAV)')
    pe.add_argument('-m', '--message', required=True, help='secret file to embed (any file type)')
    pe.add_argument('-k', '--key', required=True, help='steganography key (max 25 characters)')
    pe.add_argument('-l', '--lsb', type=int, default=1, help='number of LSB bits to use (1-4)')
    pe.add_argument('-r', '--random', action='store_true', help='use key-derived random embedding positions')
    pe.add_argument('-e', '--encrypt', action='store_true', help='encrypt the secret with the key first')
    pe.add_argument('--mode', default=Config.DEFAULT_MODE, choices=mp.EMBED_MODES,
                    help='carrier mode (auto: bitstream for MP3 output, sample for WAV/FLAC)')
    pe.add_argument('--bitrate', type=int, default=Config.BITRATE, help='re-encode bitrate in kbps')
    pe.add_argument('--tag-metadata', action='store_true', help='also store metadata in an ID3 TXXX frame')
    pe.add_argument('-o', '--output', required=True, help='output stego audio file')

    px = sub.add_parser('extract', help='Extract a secret file from a stego file')
    px.add_argument('-s', '--stego', required=True, help='stego audio file')
    px.add_argument('-k', '--key', required=True, help='steganography key (max 25 characters)')
    group = px.add_mutually_exclusive_group()
    group.add_argument('-d', '--decrypt', dest='decrypt', action='store_true', default=None,
                       help='force decryption')
    group.add_argument('--no-decrypt', dest='decrypt', action='store_false', help='never decrypt')
    px.add_argument('--mode', default='auto', choices=('auto',) + mp.MODES, help='extraction method')
    px.add_argument('--bitrate', type=int, default=Config.BITRATE, help='codec-aware target bitrate in kbps')
    px.add_argument('-o', '--output', required=True, help='output file, or directory to use the original name')

    pq = sub.add_parser('psnr', help='PSNR between two audio files')
    pq.add_argument('original')
    pq.add_argument('stego')

    pi = sub.add_parser('inspect', help='Report frames and capacity of an MP3 file')
    pi.add_argument('input')
    pi.add_argument('-l', '--lsb', type=int, default=1)
    return p.parse_args(argv)


def cmd_embed(args) -> None:
    result = mp.embed(mp.EmbedConfig(
        cover_audio=args.cover,
        secret_file=args.message,
        stego_key=args.key,
        output_path=args.output,
        n_lsb=args.lsb,
        use_random_seed=args.random,
        use_encryption=args.encrypt,
        mode=args.mode,
        bitrate=args.bitrate,
        store_tag_metadata=args.tag_metadata,
    ))
    print(f"Embedded {result.payload_size} bytes (capacity {result.capacity_bytes} bytes) into {result.output_path}")
    print(f"PSNR: {result.psnr:.2f} dB ({result.quality})")


def cmd_extract(args) -> None:
    result = mp.extract(mp.ExtractConfig(
        stego_audio=args.stego,
        stego_key=args.key,
        output_path=args.output,
        use_decryption=args.decrypt,
        mode=args.mode,
        bitrate=args.bitrate,
    ))
    print(f"Extracted {result.secret_size} bytes to {result.output_path} "
          f"using {result.method} ({result.params})")
    if result.metadata:
        print(f"Original file: {result.metadata.original_filename} ({result.metadata.file_size_bytes} bytes)")


def cmd_psnr(args) -> None:
    original = au.decode(args.original)
    stego = au.decode(args.stego)
    value = calculate_psnr(original.samples, stego.samples)
    print(f"PSNR: {value:.2f} dB ({quality_description(value)})")


def cmd_inspect(args) -> None:
    with open(args.input, "rb") as f:
        data = f.read()
    info = bs.describe_stream(data)
    units = len(bs.find_embeddable_positions(data))
    print(f"Frames found: {info['frames']}")
    print(f"Average bitrate: {info['bitrate']} kbps, sample rate: {info['samplerate']}, channels: {info['channels']}")
    print(f"Embeddable bitstream bytes: {units}")
    print(f"Nominal capacity at {args.lsb} LSB: {calculate_capacity(max(0, units - bs.HEADER_BITS), args.lsb)} bytes")


COMMANDS = {
    'embed': cmd_embed,
    'extract': cmd_extract,
    'psnr': cmd_psnr,
    'inspect': cmd_inspect,
}


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)
    try:
        COMMANDS[args.cmd](args)
    except (StegoError, OSError) as e:
        logger.error("%s failed: %s", args.cmd, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
