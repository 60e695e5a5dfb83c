from rate_bastion.core.app_factory import create_app

app = create_app()
