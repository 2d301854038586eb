import os
import sys
from application import create_app

def main():
    app = create_app(config_name=os.environ.get('APP_CONFIG', 'production'))
    port = int(os.environ.get('PORT', 5000))

    print(f"Schedule API listening on http://127.0.0.1:{port}/api")

    # Run the Flask app
    try:
        app.run(host='127.0.0.1', port=port, debug=False, use_reloader=False)
    except KeyboardInterrupt:
        print("Application stopped.")
        sys.exit(0)

if __name__ == '__main__':
    main()
