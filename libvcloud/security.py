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
Security (SSL) Settings

Usage:
    import libvcloud.security
    libvcloud.security.VERIFY_SSL_CERT = True

    # Optional.
    libvcloud.security.CA_CERTS_PATH = '/path/to/certfile'
"""

import os

__all__ = [
    'VERIFY_SSL_CERT',
    'CA_CERTS_PATH'
]

VERIFY_SSL_CERT = True

# File containing one or more PEM-encoded CA certificates
# concatenated together. None means the requests default bundle.
CA_CERTS_PATH = None

# Allow user to explicitly specify which CA bundle to use, using an environment
# variable
environment_cert_file = os.getenv('SSL_CERT_FILE', None)
if environment_cert_file is not None:
    # Make sure the file exists
    if not os.path.exists(environment_cert_file):
        raise ValueError('Certificate file %s doesn\'t exist' %
                         (environment_cert_file))

    if not os.path.isfile(environment_cert_file):
        raise ValueError('Certificate file can\'t be a directory')

    CA_CERTS_PATH = environment_cert_file

VERIFY_SSL_DISABLED_MSG = (
    'SSL certificate verification is disabled for %s, this can pose a '
    'security risk. Only use the insecure option against clouds with '
    'self-signed certificates you trust.'
)
