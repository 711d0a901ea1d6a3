import os

from dotenv import load_dotenv

dotenv_path = os.getenv('VIDEOMINER_DOTENV', '.env')
load_dotenv(dotenv_path)

from app import app  # noqa: E402

if __name__ == '__main__':
    # Set default host and port
    host = os.getenv('HOST', '127.0.0.1')
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('DEBUG', 'False').lower() == 'true'

    print(f"Starting Video Miner on {host}:{port}")
    print("Integration Status Check:")

    # Only report whether each key is set, never its value
    from miner import SETTINGS
    for name, ready in SETTINGS.integrations().items():
        print(f"  {name} configured: {ready}")

    if not SETTINGS.affiliate_configured:
        print("\n[WARN] Shopee affiliate keys missing; shop-video mining and product naming fallbacks are off.")

    print(f"\nAccess URL: http://{host}:{port}")

    app.run(host=host, port=port, debug=debug, threaded=True)
