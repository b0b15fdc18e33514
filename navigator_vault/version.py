"""Navigator Vault Meta information.
   Navigator Vault keeps shared, end-to-end encrypted vaults in sync with their membership.
"""
__title__ = 'navigator_vault'
__description__ = (
   'Navigator Vault manages encryption context and key rotation '
   'for shared, access-controlled vaults.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-vault'
