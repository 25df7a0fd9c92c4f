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

from typing import Optional

from enum import Enum

if False:
    # Work around for MYPY for cyclic import problem
    from libvcloud.driver import VCloudDriver

__all__ = [
    "Type",
    "ErrorType",
    "TaskStatus",
    "VCloudError",
    "MalformedResponseError",
    "ConnectivityError",
    "ProviderError",
    "AuthenticationError",
    "InvalidCredsError",
    "BusyEntityError",
    "TaskFailedError",
    "TaskTimeoutError",
    "NoSupportedVersionError",
    "CancelledError",
    "MediaType",
]


class Type(str, Enum):
    def __str__(self):
        return str(self.value)


class ErrorType(Type):
    """
    Classification of a provider failure.
    """
    AUTHENTICATION = "authentication"
    GENERAL = "general"


class TaskStatus(Type):
    """
    Collapsed view of the vCloud task states.
    """
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"

    @classmethod
    def from_provider(cls, value):
        # type: (Optional[str]) -> TaskStatus
        value = (value or '').strip()
        if value == 'success':
            return cls.SUCCESS
        if value in ('error', 'canceled', 'aborted'):
            return cls.ERROR
        return cls.RUNNING


class VCloudError(Exception):
    """The base class for other libvcloud exceptions"""

    def __init__(self, value, driver=None):
        # type: (str, Optional[VCloudDriver]) -> None
        super(VCloudError, self).__init__(value)
        self.value = value
        self.driver = driver

    def __str__(self):
        return str(self.value)

    def __repr__(self):
        return ("<" + self.__class__.__name__ + " in " +
                repr(self.driver) +
                " " +
                repr(self.value) + ">")


class MalformedResponseError(VCloudError):
    """Exception for the cases when a provider returns a malformed
    response, e.g. you request XML and provider returns
    '<h3>something</h3' due to some error on their side."""

    def __init__(self, value, body=None, driver=None):
        # type: (str, Optional[str], Optional[VCloudDriver]) -> None
        super(MalformedResponseError, self).__init__(value, driver=driver)
        self.body = body

    def __repr__(self):
        return ("<MalformedResponseError in " +
                repr(self.driver) +
                " " +
                repr(self.value) +
                ">: " +
                repr(self.body))


class ConnectivityError(VCloudError):
    """Transport, DNS or TLS failure talking to the cloud endpoint."""


class ProviderError(VCloudError):
    """
    Exception used when provider gives back
    error response (HTTP 4xx, 5xx) for a request.

    Carries the provider-assigned major and minor error codes so the
    failure can be matched against the server-side logs.
    """

    def __init__(self, value, http_code, major_code=None, minor_code=None,
                 error_type=ErrorType.GENERAL, driver=None):
        # type: (str, int, Optional[str], Optional[str], ErrorType, Optional[VCloudDriver]) -> None
        super(ProviderError, self).__init__(value=value, driver=driver)
        self.http_code = http_code
        self.major_code = major_code
        self.minor_code = minor_code
        self.error_type = error_type

    def __str__(self):
        return '[%s : %s] %s' % (self.http_code,
                                 self.minor_code or 'Error', self.value)

    def __repr__(self):
        return ('<%s http_code=%s major=%s minor=%s %r>'
                % (self.__class__.__name__, self.http_code,
                   self.major_code, self.minor_code, self.value))


class AuthenticationError(ProviderError):
    """Exception used when invalid credentials are used on a provider."""

    def __init__(self, value='Invalid credentials with the provider',
                 http_code=401, major_code=None, minor_code=None,
                 driver=None):
        super(AuthenticationError, self).__init__(
            value, http_code=http_code, major_code=major_code,
            minor_code=minor_code, error_type=ErrorType.AUTHENTICATION,
            driver=driver)


# Generic name for credential failures
InvalidCredsError = AuthenticationError


class BusyEntityError(ProviderError):
    """
    The target entity is busy with another operation. The whole
    operation may be retried after backing off.
    """


class TaskFailedError(VCloudError):
    """A server-side task finished in an error state."""

    def __init__(self, value, major_code=None, minor_code=None,
                 task_href=None, driver=None):
        super(TaskFailedError, self).__init__(value, driver=driver)
        self.major_code = major_code
        self.minor_code = minor_code
        self.task_href = task_href

    def __str__(self):
        return '[%s : %s] %s' % (self.major_code, self.minor_code,
                                 self.value)


class TaskTimeoutError(VCloudError):
    """A server-side task did not finish within the deadline."""

    def __init__(self, value, task_href=None, timeout=None, driver=None):
        super(TaskTimeoutError, self).__init__(value, driver=driver)
        self.task_href = task_href
        self.timeout = timeout


class NoSupportedVersionError(VCloudError):
    """None of the versions advertised by the endpoint is known to us."""


class CancelledError(VCloudError):
    """The caller cancelled an in-flight operation."""


class MediaType(object):
    """
    Content types of the vCloud resources and action parameters.
    """
    ORG = 'application/vnd.vmware.vcloud.org+xml'
    VDC = 'application/vnd.vmware.vcloud.vdc+xml'
    CATALOG = 'application/vnd.vmware.vcloud.catalog+xml'
    CATALOG_ITEM = 'application/vnd.vmware.vcloud.catalogItem+xml'
    VAPP = 'application/vnd.vmware.vcloud.vApp+xml'
    VAPP_TEMPLATE = 'application/vnd.vmware.vcloud.vAppTemplate+xml'
    VM = 'application/vnd.vmware.vcloud.vm+xml'
    DISK = 'application/vnd.vmware.vcloud.disk+xml'
    TASK = 'application/vnd.vmware.vcloud.task+xml'
    METADATA = 'application/vnd.vmware.vcloud.metadata+xml'

    DEPLOY_PARAMS = 'application/vnd.vmware.vcloud.deployVAppParams+xml'
    UNDEPLOY_PARAMS = 'application/vnd.vmware.vcloud.undeployVAppParams+xml'
    ATTACH_DISK_PARAMS = \
        'application/vnd.vmware.vcloud.diskAttachOrDetachParams+xml'
    INSTANTIATE_VAPP_TEMPLATE_PARAMS = \
        'application/vnd.vmware.vcloud.instantiateVAppTemplateParams+xml'
    CAPTURE_VAPP_PARAMS = 'application/vnd.vmware.vcloud.captureVAppParams+xml'
    CREATE_DISK_PARAMS = 'application/vnd.vmware.vcloud.diskCreateParams+xml'
    COMPOSE_VAPP_PARAMS = 'application/vnd.vmware.vcloud.composeVAppParams+xml'
