# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Connection settings for a single vCloud organisation.

Custom properties take precedence over the environment, which takes
precedence over the built-in defaults.
"""

import os
from urllib import parse as urlparse
from typing import Dict
from typing import List
from typing import Optional

from libvcloud.common.types import VCloudError
from libvcloud.utils.misc import ReprMixin, str2bool, str2csv

__all__ = [
    'ProviderContext',
    'COMPAT_ENV_VARIABLE_NAME',
    'INSECURE_ENV_VARIABLE_NAME',
    'VERSION_PREFERENCE_ENV_VARIABLE_NAME',
]

COMPAT_ENV_VARIABLE_NAME = 'VCLOUD_COMPAT'
INSECURE_ENV_VARIABLE_NAME = 'VCLOUD_INSECURE'
VERSION_PREFERENCE_ENV_VARIABLE_NAME = 'VCLOUD_VERSION_PREFERENCE'

ENDPOINT_ENV_VARIABLE_NAME = 'VCLOUD_ENDPOINT'
ACCOUNT_ENV_VARIABLE_NAME = 'VCLOUD_ACCOUNT'
USER_ENV_VARIABLE_NAME = 'VCLOUD_USER'
PASSWORD_ENV_VARIABLE_NAME = 'VCLOUD_PASSWORD'


class ProviderContext(ReprMixin):
    """
    :param endpoint: Base URL of the cloud, e.g. ``https://vcd.example.com``.
    :param account: Name of the vCloud organisation.
    :param access_public: User name inside the organisation.
    :param access_private: Password of that user.
    :param custom_properties: Optional overrides. Recognised keys are
                              ``compat``, ``insecure``, ``versionPreference``
                              (comma separated), ``proxyHost`` and
                              ``proxyPort``.
    """

    _repr_attributes = ['endpoint', 'account', 'access_public']

    def __init__(self, endpoint, account, access_public, access_private,
                 cloud_name=None, provider_name=None, custom_properties=None,
                 timeout=None):
        # type: (str, str, str, str, Optional[str], Optional[str], Optional[Dict[str, str]], Optional[int]) -> None
        if not endpoint:
            raise VCloudError('No endpoint was defined for this context')

        self.endpoint = endpoint.rstrip('/')
        self.account = account
        self.access_public = access_public
        self.access_private = access_private
        self.cloud_name = cloud_name
        self.provider_name = provider_name
        self.custom_properties = dict(custom_properties or {})
        self.timeout = timeout

    @classmethod
    def from_environ(cls, environ=None, **kwargs):
        """
        Build a context from ``VCLOUD_ENDPOINT``, ``VCLOUD_ACCOUNT``,
        ``VCLOUD_USER`` and ``VCLOUD_PASSWORD``.
        """
        environ = os.environ if environ is None else environ
        return cls(endpoint=environ.get(ENDPOINT_ENV_VARIABLE_NAME),
                   account=environ.get(ACCOUNT_ENV_VARIABLE_NAME),
                   access_public=environ.get(USER_ENV_VARIABLE_NAME),
                   access_private=environ.get(PASSWORD_ENV_VARIABLE_NAME),
                   **kwargs)

    def get_property(self, name, env_name=None, default=None):
        value = self.custom_properties.get(name)
        if value is None and env_name is not None:
            value = os.environ.get(env_name)
        if value is None:
            return default
        return value

    @property
    def compat(self):
        # type: () -> bool
        return str2bool(self.get_property('compat', COMPAT_ENV_VARIABLE_NAME))

    @property
    def insecure(self):
        # type: () -> bool
        return str2bool(self.get_property('insecure',
                                          INSECURE_ENV_VARIABLE_NAME))

    @property
    def version_preference(self):
        # type: () -> List[str]
        return str2csv(self.get_property(
            'versionPreference', VERSION_PREFERENCE_ENV_VARIABLE_NAME))

    @property
    def proxy_url(self):
        # type: () -> Optional[str]
        """
        Proxy built from ``proxyHost`` and ``proxyPort``. The port may also
        be part of ``proxyHost``.

        :raises VCloudError: The host is set but no valid port is known.
        """
        host = self.get_property('proxyHost')
        port = self.get_property('proxyPort')

        if not host:
            return None
        if '://' not in host:
            host = 'http://' + host
        url = '%s:%s' % (host, port) if port else host

        try:
            parsed = urlparse.urlparse(url)
            valid = bool(parsed.hostname and parsed.port)
        except ValueError:
            valid = False

        if not valid or parsed.scheme not in ('http', 'https'):
            raise VCloudError('Invalid proxy %s, proxyHost and proxyPort '
                              'must give <scheme>://<host>:<port>' % (url))
        return url
