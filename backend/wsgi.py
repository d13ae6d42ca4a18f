from udhaar import create_app

app = create_app()
