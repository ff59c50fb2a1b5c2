from django.apps import AppConfig


class UploadGatewayConfig(AppConfig):
    name = 'upload_gateway'
    verbose_name = 'Upload Gateway'

    def ready(self):
        # Create the upload directory once, before any request is served
        from .utils import configure_storage
        configure_storage()
