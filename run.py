#!/usr/bin/env python3
"""
Startup script for the auth toolkit server.

This script initializes and runs the Flask application with proper error handling
and configuration validation.
"""

import sys
from auth_toolkit.app import create_app
from auth_toolkit.config import ConfigurationError

def main():
    """Main entry point for the application."""
    try:
        app = create_app()

        # Get configuration
        host = app.config.get('HOST', '127.0.0.1')
        port = app.config.get('PORT', 5000)
        debug = app.config.get('DEBUG', False)
        base_path = app.auth.context.base_path

        print("🚀 Starting auth toolkit server...")
        print(f"📍 Server will be available at: http://{host}:{port}")
        print(f"🔐 Auth endpoints mounted at: {base_path}")
        print(f"🔧 Debug mode: {'ON' if debug else 'OFF'}")
        print()
        print("📖 Setup Instructions:")
        print("1. Make sure you have set up OAuth credentials in your .env file")
        print(f"2. POST {base_path}/sign-in/social with {{\"provider\": \"facebook\"}} to start a sign-in")
        print(f"3. Register {base_path}/callback/<provider> as the redirect URI with each provider")
        print(f"4. GET {base_path}/providers lists the configured providers")
        print()
        print("🛑 Press Ctrl+C to stop the server")
        print("-" * 60)

        app.run(
            host=host,
            port=port,
            debug=debug,
            use_reloader=debug
        )

    except ConfigurationError as e:
        print(f"❌ Configuration Error: {e}", file=sys.stderr)
        print("\n💡 Quick Fix:")
        print("1. Copy .env.example to .env")
        print("2. Fill in AUTH_SECRET and your OAuth credentials")
        print("3. Run the application again")
        sys.exit(1)

    except KeyboardInterrupt:
        print("\n👋 Shutting down auth toolkit server...")
        sys.exit(0)

if __name__ == '__main__':
    main()
