"""Django app configuration for Apple and Google Wallet ticket passes."""

from django.apps import AppConfig


class WalletConfig(AppConfig):
    """The wallet app holds no models; it only generates passes for tickets."""

    name = "wallet"
    label = "wallet"
    verbose_name = "Ticket Wallet Passes"
