#!/usr/bin/env python3
"""
Example client for the GIR Schema API.

This script demonstrates how to browse a served introspection document:
namespace metadata with ETag caching, entity listings and details, class
ancestry, build diagnostics and emitter output.
"""

from typing import Dict, List, Optional

import httpx


class GIRSchemaClient:
    """Client for interacting with the GIR Schema API."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize the client with the API base URL."""
        self.base_url = base_url
        self.client = httpx.Client(base_url=base_url, timeout=30.0)
        self.etag_cache: Dict[str, str] = {}

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close the client."""
        self.client.close()

    def get_health(self) -> Dict:
        """Check API health status."""
        response = self.client.get("/health")
        response.raise_for_status()
        return response.json()

    def get_metadata(self, use_cache: bool = True) -> Optional[Dict]:
        """
        Get namespace metadata with caching support.

        Args:
            use_cache: Whether to use cached ETag

        Returns:
            Metadata dict or None if not modified (304)
        """
        headers = {}
        if use_cache and "metadata" in self.etag_cache:
            headers["If-None-Match"] = self.etag_cache["metadata"]

        response = self.client.get("/metadata", headers=headers)

        if response.status_code == 304:
            return None  # Not modified, use cached version

        response.raise_for_status()

        if "ETag" in response.headers:
            self.etag_cache["metadata"] = response.headers["ETag"]

        return response.json()

    def list_types(self, kind: Optional[str] = None) -> List[Dict]:
        """List top-level entities, optionally filtered by kind tag."""
        params = {"kind": kind} if kind else {}
        response = self.client.get("/types", params=params)
        response.raise_for_status()
        return response.json()["types"]

    def get_type(self, name: str) -> Dict:
        response = self.client.get(f"/types/{name}")
        response.raise_for_status()
        return response.json()["type"]

    def get_ancestry(self, name: str) -> Dict:
        response = self.client.get(f"/classes/{name}/ancestry")
        response.raise_for_status()
        return response.json()

    def search(self, query: str, kind: Optional[str] = None, limit: int = 100) -> List[Dict]:
        """
        Search entities by partial name.

        Args:
            query: Search term (min 2 characters)
            kind: Optional kind tag filter (alias, class, ...)
            limit: Maximum results (1-500)
        """
        params = {"query": query, "limit": limit}
        if kind:
            params["kind"] = kind
        response = self.client.get("/search", params=params)
        response.raise_for_status()
        return response.json()["results"]

    def get_diagnostics(self) -> List[Dict]:
        response = self.client.get("/diagnostics")
        response.raise_for_status()
        return response.json()["diagnostics"]

    def emit(self, document: Optional[str] = None) -> List[str]:
        """Emitter output for the served document, or for ``document`` if given."""
        if document is None:
            response = self.client.get("/emit")
            response.raise_for_status()
            return response.text.splitlines()
        response = self.client.post("/emit", json={"document": document})
        response.raise_for_status()
        return response.json()["lines"]


def main():
    """Demonstrate API client usage."""

    print("GIR Schema API Client Example")
    print("=" * 50)

    with GIRSchemaClient() as client:
        print("\n1. Checking API health...")
        health = client.get_health()
        print(f"   Status: {health['status']}")
        print(f"   Namespace: {health.get('namespace', 'unknown')}")

        print("\n2. Getting namespace metadata...")
        metadata = client.get_metadata()
        if metadata:
            print(f"   Source: {metadata.get('source')}")
            print(f"   Identifier prefixes: {', '.join(metadata.get('identifier_prefixes', []))}")
            for category, count in metadata.get("counts", {}).items():
                print(f"   {category}: {count}")
        else:
            print("   Using cached metadata (not modified)")

        print("\n3. Listing classes...")
        classes = client.list_types(kind="class")
        for entry in classes[:5]:
            marker = " (deprecated)" if entry["deprecated"] else ""
            print(f"   - {entry['name']}{marker}")

        if classes:
            name = classes[-1]["name"]
            print(f"\n4. Ancestry of {name}...")
            ancestry = client.get_ancestry(name)
            chain = " -> ".join([name] + ancestry["ancestry"])
            suffix = "" if ancestry["complete"] else " -> ? (chain leaves this document)"
            print(f"   {chain}{suffix}")

        print("\n5. Build diagnostics...")
        for diagnostic in client.get_diagnostics()[:10]:
            print(f"   [{diagnostic['kind']}] {diagnostic['message']}")

        print("\n6. First emitted lines...")
        for line in client.emit()[:10]:
            print(f"   {line}")

        print("\n7. Testing caching with metadata...")
        metadata2 = client.get_metadata(use_cache=True)
        if metadata2 is None:
            print("   Second request: Using cache (304 Not Modified)")
        else:
            print("   Second request: Data received (cache miss)")


if __name__ == "__main__":
    try:
        main()
    except httpx.ConnectError:
        print("\nError: Could not connect to API server.")
        print("Make sure the server is running: python -m gir_schema_api.run_server")
