#!/usr/bin/env python3
"""Verify WordPress API connection and relay reachability for a tenant."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from draftpress.config import load_settings
from draftpress.orchestrator import PublishOrchestrator
from draftpress.utils.logger import setup_logging


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    tenant_id = argv[0] if argv else None

    settings = load_settings("config.yaml")
    setup_logging(settings.logging)
    print(f"Verifying WordPress connection{f' for tenant {tenant_id}' if tenant_id else ''}...")

    orchestrator = PublishOrchestrator.from_settings(settings)
    report = orchestrator.test_connection(tenant_id)

    direct = report.direct
    if direct.success:
        print(f"  Direct: connected to {direct.user_info['base_url']} "
              f"as {direct.user_info['username']} ({direct.credential_source} credentials)")
    else:
        print(f"  Direct: FAILED [{direct.error_kind.value}] {direct.error}")

    if report.relay is None:
        print("  Relay: not configured")
    elif report.relay.success:
        print(f"  Relay: {report.relay.message}")
    else:
        print(f"  Relay: FAILED [{report.relay.error_kind.value}] {report.relay.error}")

    if report.connected:
        print(f"\nPublishing available via {report.method}.")
        return 0

    print("\nNo delivery path is available. Please check:")
    print("  1. The tenant's base_url, username and app_password in the tenants file")
    print("  2. Or WP_URL, WP_USERNAME and WP_APP_PASSWORD in .env")
    print("  3. The REST API is accessible at {WP_URL}/wp-json/wp/v2/")
    print("  4. RELAY_WEBHOOK_URL if a relay should be used")
    return 1


if __name__ == "__main__":
    sys.exit(main())
