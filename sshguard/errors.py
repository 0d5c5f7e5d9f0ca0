# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)


class GuardStartupError(RuntimeError):
    ''' A collaborator required by the guard could not be initialized.  Never retried '''
    pass


class LogSourceError(GuardStartupError):
    ''' The authentication log could not be opened or read '''
    pass


class PacketCaptureError(GuardStartupError):
    ''' The packet capture could not be opened, or its BPF filter could not be installed '''
    pass


class LocalAddressError(GuardStartupError):
    ''' The tracked interface does not exist or has no usable IPv4 address '''
    pass
