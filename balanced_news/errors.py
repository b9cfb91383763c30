##########################################################################################
#
# Script name: errors.py
#
# Description: Exceptions raised by the aggregation pipeline.
#
##########################################################################################


# ****************************************************************************************
# Exceptions
# ****************************************************************************************


class Error(Exception):
    '''
    Base class for exceptions in this package.
    '''
    pass


class ConfigurationError(Error):
    '''
    Required configuration (such as the provider API key) is missing.
    '''
    def __init__(self, setting):
        self.setting = setting
        self.message = f'Missing required configuration: {setting}'
        super().__init__(self.message)


class QuotaExceededError(Error):
    '''
    The upstream provider rejected the request for quota or plan reasons.
    '''
    def __init__(self, status, endpoint=''):
        self.status = status
        self.endpoint = endpoint
        self.message = f'Upstream quota exceeded (status {status}) on {endpoint or "unknown endpoint"}'
        super().__init__(self.message)


class UpstreamError(Error):
    '''
    A transient upstream failure: timeout, connection error, 5xx, or malformed body.
    '''
    def __init__(self, endpoint, reason):
        self.endpoint = endpoint
        self.reason = reason
        self.message = f'Failed to fetch {endpoint}: {reason}'
        super().__init__(self.message)
