"""
Blood Type Compatibility Helper
Determines which donor ABO/Rh types can give to which recipient ABO/Rh types
"""

ABO_TYPES = ['O', 'A', 'B', 'AB']
RH_FACTORS = ['-', '+']

# ABO compatibility: recipient ABO -> donor ABO groups it can receive from
ABO_COMPATIBILITY = {
    'O': ['O'],
    'A': ['A', 'O'],
    'B': ['B', 'O'],
    'AB': ['A', 'B', 'AB', 'O'],  # Universal recipient
}


def blood_type_label(abo, rh):
    """Join ABO and Rh into the familiar label, e.g. ('AB', '-') -> 'AB-'"""
    return f"{abo}{rh}"


def is_compatible(recipient_abo, recipient_rh, donor_abo, donor_rh):
    """
    Check if a donor can give to a recipient.

    ABO must satisfy the subset rule (O gives to everyone, AB receives from
    everyone) and a Rh positive donor may only give to a Rh positive
    recipient. Unknown values are never compatible.

    Args:
        recipient_abo: Recipient ABO group (e.g., 'A')
        recipient_rh: Recipient Rh factor ('+' or '-')
        donor_abo: Donor ABO group
        donor_rh: Donor Rh factor

    Returns:
        Boolean: True if compatible, False otherwise
    """
    if recipient_rh not in RH_FACTORS or donor_rh not in RH_FACTORS:
        return False

    abo_ok = donor_abo in ABO_COMPATIBILITY.get(recipient_abo, [])
    rh_ok = donor_rh == '-' or recipient_rh == '+'

    return abo_ok and rh_ok


def get_compatible_donors(recipient_abo, recipient_rh):
    """
    Get list of blood types that can donate to recipient

    Returns:
        List of compatible donor blood type labels
    """
    return [
        blood_type_label(abo, rh)
        for abo in ABO_TYPES
        for rh in RH_FACTORS
        if is_compatible(recipient_abo, recipient_rh, abo, rh)
    ]


def get_compatible_recipients(donor_abo, donor_rh):
    """
    Get list of blood types that can receive from donor

    Returns:
        List of compatible recipient blood type labels
    """
    return [
        blood_type_label(abo, rh)
        for abo in ABO_TYPES
        for rh in RH_FACTORS
        if is_compatible(abo, rh, donor_abo, donor_rh)
    ]
