from __future__ import annotations

import argparse
import mimetypes
import time
from dataclasses import dataclass
from pathlib import Path

import httpx

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"}
TERMINAL_STATES = {"completed", "errored"}


@dataclass
class SubmitContext:
    """Runtime context for upload and polling requests."""

    api_base: str
    poll_sec: float
    timeout_sec: float


def collect_images(images_dir: Path) -> list[Path]:
    return sorted(
        path for path in images_dir.iterdir() if path.suffix.lower() in IMAGE_SUFFIXES
    )


def submit_images(
    client: httpx.Client,
    context: SubmitContext,
    image_paths: list[Path],
) -> dict:
    files = []
    for path in image_paths:
        media_type, _ = mimetypes.guess_type(path.name)
        files.append(
            (
                "files",
                (path.name, path.read_bytes(), media_type or "application/octet-stream"),
            )
        )
    response = client.post(f"{context.api_base}/v1/uploads", files=files)
    response.raise_for_status()
    return response.json()


def wait_for_files(
    client: httpx.Client,
    context: SubmitContext,
    file_ids: list[str],
) -> list[dict]:
    deadline = time.monotonic() + context.timeout_sec
    finished: dict[str, dict] = {}
    while len(finished) < len(file_ids) and time.monotonic() < deadline:
        for file_id in file_ids:
            if file_id in finished:
                continue
            response = client.get(f"{context.api_base}/v1/uploads/{file_id}")
            response.raise_for_status()
            payload = response.json()
            if payload["state"] in TERMINAL_STATES:
                finished[file_id] = payload
                print(_describe(payload))
        time.sleep(context.poll_sec)
    return list(finished.values())


def _describe(payload: dict) -> str:
    if payload["state"] == "errored":
        return f"[ERROR] {payload['file_name']}: {payload['error']}"
    detection = payload["detection"] or {}
    return (
        f"[DONE] {payload['file_name']} -> {detection.get('status')} "
        f"({detection.get('confidence')})"
    )


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--images-dir",
        required=True,
        help="Path to folder with PNG/JPG/GIF/BMP/WEBP images",
    )
    parser.add_argument("--api-base", default="http://127.0.0.1:8000")
    parser.add_argument("--poll-sec", type=float, default=0.5)
    parser.add_argument("--timeout-sec", type=float, default=60.0)
    args = parser.parse_args()

    images_dir = Path(args.images_dir)
    if not images_dir.exists():
        raise SystemExit(f"images dir not found: {images_dir}")

    image_paths = collect_images(images_dir)
    if not image_paths:
        raise SystemExit("no images found")

    context = SubmitContext(
        api_base=args.api_base,
        poll_sec=args.poll_sec,
        timeout_sec=args.timeout_sec,
    )
    with httpx.Client(timeout=15) as client:
        try:
            receipt = submit_images(client, context, image_paths)
        except httpx.HTTPStatusError as error:
            raise SystemExit(f"upload failed: {error.response.text}") from error
        for rejected in receipt["rejected"]:
            print(f"[REJECTED] {rejected['file_name']}: {rejected['reason']}")
        file_ids = [item["file_id"] for item in receipt["accepted"]]
        print(f"[INFO] accepted={len(file_ids)} rejected={len(receipt['rejected'])}")

        finished = wait_for_files(client, context, file_ids)
        if len(finished) < len(file_ids):
            print(f"[WARN] {len(file_ids) - len(finished)} file(s) still running")

        stats = client.get(f"{context.api_base}/v1/stats").json()
    print(
        f"[STATS] detections={stats['total_detections']} "
        f"alerts={stats['unauthorized_ads']} today={stats['alerts_today']}"
    )


if __name__ == "__main__":
    main()
