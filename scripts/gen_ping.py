#!/usr/bin/env python3
from app.services.generation_client import GenerationClient

def main() -> int:
    c = GenerationClient()
    ok = c.ping()
    print("BASE_API:", c.settings.base_api)
    print("MODEL:", c.settings.model)
    print("configured:", "oui" if c.is_configured() else "non")
    print("ping:", "OK" if ok else "KO")
    return 0 if ok else 1

if __name__ == "__main__":
    raise SystemExit(main())
