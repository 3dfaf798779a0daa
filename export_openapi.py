#!/usr/bin/env python3
"""
Export the markup engine OpenAPI schema to a JSON file
(importable into Postman or a client generator).

Usage:
    python export_openapi.py [output.json]
"""
import json
import sys

from app.main import app


def main():
    output = sys.argv[1] if len(sys.argv) > 1 else "openapi.json"
    with open(output, "w", encoding="utf-8") as f:
        json.dump(app.openapi(), f, indent=2, ensure_ascii=False)

    paths = app.openapi().get("paths", {})
    print(f"✅ OpenAPI schema with {len(paths)} paths exported to '{output}'")


if __name__ == "__main__":
    main()
