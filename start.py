#!/usr/bin/env python3
"""
恋语AI 离线网关启动脚本
Starts the offline gateway in front of the chat API
"""

import os
import socket
import subprocess
import sys


def _pick_free_port(host: str, preferred: int, max_tries: int = 30) -> int:
    preferred = int(preferred or 0)
    for port in range(max(preferred, 1), max(preferred, 1) + max_tries):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind((host, port))
                return port
        except OSError:
            continue
    return preferred or 0


def check_python():
    """Check if Python 3.10+ is available"""
    version = sys.version_info
    if version.major < 3 or (version.major == 3 and version.minor < 10):
        print("[ERROR] Python 3.10+ is required")
        return False
    print(f"[OK] Python {version.major}.{version.minor}.{version.micro}")
    return True


def start_gateway(port: int):
    """Run the gateway in the foreground until interrupted"""
    backend_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "backend")
    host = os.environ.get("LIANYU_HOST", "127.0.0.1")
    env = dict(os.environ)
    env["LIANYU_PORT"] = str(port)

    print(f"  Gateway:  http://{host}:{port}")
    print(f"  Upstream: {env.get('LIANYU_UPSTREAM_URL', '(config default)')}")
    print(f"  Status:   http://{host}:{port}/_offline/status")
    print()
    return subprocess.call(
        [sys.executable, "-m", "uvicorn", "lianyu.main:app", "--host", host, "--port", str(port)],
        cwd=backend_dir,
        env=env,
    )


def main():
    print("=" * 50)
    print("  LianyuAI - Offline Gateway")
    print("=" * 50)
    print()

    print("Checking requirements...")
    if not check_python():
        sys.exit(1)
    print()

    preferred = int(os.environ.get("LIANYU_PORT") or os.environ.get("PORT") or 8000)
    port = _pick_free_port("127.0.0.1", preferred) or preferred
    try:
        sys.exit(start_gateway(port))
    except KeyboardInterrupt:
        print("\nShutting down...")


if __name__ == '__main__':
    main()
