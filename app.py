import os

from dotenv import load_dotenv

from cardclock import create_app

# Load environment variables from the .env file
load_dotenv()

app = create_app()

if __name__ == "__main__":
    port = int(os.getenv("PORT", 57580))
    app.run(debug=False, port=port, threaded=True)
