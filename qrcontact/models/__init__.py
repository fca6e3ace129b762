from qrcontact.models.vehicle import Vehicle
from qrcontact.models.scan_record import ScanRecord
from qrcontact.models.otp_session import OtpSession

__all__ = ["Vehicle", "ScanRecord", "OtpSession"]
