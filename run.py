import argparse
from gqlauth import create_app
from gqlauth.settings import PORT

def main():
    parser = argparse.ArgumentParser(description="Launch GraphQL server with field-level authorization")
    parser.add_argument("--port", type=int, default=PORT, help="Port to run the server on")
    parser.add_argument("--cert", help="TLS certificate (PEM)")
    parser.add_argument("--key", help="TLS private key (PEM)")
    args = parser.parse_args()

    app = create_app()
    app.run(
        debug=True,
        port=args.port,
        ssl_context=(args.cert, args.key) if args.cert and args.key else None
    )

if __name__ == "__main__":
    main()
