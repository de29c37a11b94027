"""Offline tool for creating and checking report tokens.

Usage:
    report-token encrypt "https://example.com/report.json"
    report-token decrypt "<token>"
    report-token test "https://example.com/report.json"

The secret is read from the same config.json / secrets.yml / RENDERER_APP_SECRET
sources as the server.
"""

import argparse
import sys

from report_renderer.config import RendererConfig
from report_renderer.errors import TokenError
from report_renderer.services.token_cipher import decrypt_token, encrypt_url


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Encrypt report URLs into tokens for /report/<token>."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    enc = sub.add_parser("encrypt", help="Encrypt a URL and print the token")
    enc.add_argument("url")

    dec = sub.add_parser("decrypt", help="Decrypt a token and print the URL")
    dec.add_argument("token")

    test = sub.add_parser("test", help="Encrypt then decrypt to check the round trip")
    test.add_argument("url")

    return parser.parse_args(argv)


def _size_comparison(url: str, token: str) -> str:
    reduction = round((1 - len(token) / len(url)) * 100) if url else 0
    direction = "shorter" if reduction > 0 else "longer"
    return f"Token is {abs(reduction)}% {direction} than the original URL"


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    config = RendererConfig.from_json_file()
    secret = config.app_secret

    try:
        if args.command == "encrypt":
            token = encrypt_url(args.url, secret)
            print("Encryption successful!")
            print(f"Original URL: {args.url}")
            print(f"Encrypted token: {token}")
            print(f"Token length: {len(token)} characters")
            print(f"\nTest URL: {config.base_url}/report/{token}")
            return 0

        if args.command == "decrypt":
            url = decrypt_token(args.token, secret)
            print("Decryption successful!")
            print(f"Encrypted token: {args.token}")
            print(f"Original URL: {url}")
            return 0

        token = encrypt_url(args.url, secret)
        url = decrypt_token(token, secret)
        print("Testing round-trip encryption...")
        print(f"Original URL: {args.url} ({len(args.url)} chars)")
        print(f"Encrypted token: {token} ({len(token)} chars)")
        print(f"Decrypted URL: {url}")
        print(_size_comparison(args.url, token))

        if url != args.url:
            print("Round-trip test FAILED! URLs do not match.", file=sys.stderr)
            return 1
        print("Round-trip test PASSED!")
        print(f"\nTest URL: {config.base_url}/report/{token}")
        return 0
    except TokenError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
