"""Entry point for the code-linker MCP server."""

from code_linker.server import create_server


def main() -> None:
    """Run the code-linker MCP server."""
    server = create_server()
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
