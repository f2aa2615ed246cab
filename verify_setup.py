try:
    from charmcircle.main import app
    from charmcircle.core.config import settings
    print(f"Loaded Settings: {settings.PROJECT_NAME}")
    print(f"Routes: {len(app.routes)}")
    print("SUCCESS")
except Exception as e:
    import traceback
    traceback.print_exc()
    print(f"ERROR: {e}")
    exit(1)
