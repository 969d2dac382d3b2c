#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    # Dummy provider key so the boot warning path is not the only one exercised
    os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_preflight")

    import setupflow.main
    print("Import setupflow.main: OK")

    import setupflow.provider.stripe_client
    print("Import setupflow.provider.stripe_client: OK")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
